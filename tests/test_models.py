# tests/test_models.py
from lms_engine.models import (
    COMPLETED, NOT_STARTED, AssessmentAttempt, ContentItem, Course, Enrollment, Module,
    ModuleProgress,
)


def test_content_item_defaults():
    item = ContentItem(id="c1", title="Intro")
    assert item.type == "document"
    assert item.duration == 0
    assert item.mandatory is True


def test_enrollment_defaults():
    e = Enrollment(id="e1", staff_id="s1", course_id="c1")
    assert e.status == NOT_STARTED
    assert e.progress == 0
    assert e.module_progress == []
    assert e.fired_events == set()


def test_course_lookups(course):
    assert course.get_module("m2").title == "Two"
    assert course.get_module("nope") is None
    module, assessment = course.find_assessment("quiz")
    assert module.id == "m2"
    assert assessment.passing_score == 70
    assert course.find_assessment("nope") == (None, None)
    assert course.total_content == 4


def test_module_content_ids():
    module = Module(id="m", title="M", content=[ContentItem("x", "X"), ContentItem("y", "Y")])
    assert module.content_ids == ["x", "y"]


def test_enrollment_attempt_helpers():
    e = Enrollment(id="e1", staff_id="s1", course_id="c1")
    e.attempts.append(AssessmentAttempt("quiz", 1, {}, 40, False, "t1"))
    e.attempts.append(AssessmentAttempt("other", 1, {}, 90, True, "t2"))
    e.attempts.append(AssessmentAttempt("quiz", 2, {}, 80, True, "t3"))
    assert [a.attempt_number for a in e.attempts_for("quiz")] == [1, 2]
    assert e.latest_attempt("quiz").score == 80
    assert e.latest_attempt("missing") is None


def test_get_module_progress():
    e = Enrollment(id="e1", staff_id="s1", course_id="c1")
    e.module_progress.append(ModuleProgress(module_id="m1", status=COMPLETED))
    assert e.get_module_progress("m1").status == COMPLETED
    assert e.get_module_progress("m2") is None
