import pytest

from lms_engine.errors import ModuleLocked, UnknownContent, UnknownModule
from lms_engine.models import (
    COMPLETED, IN_PROGRESS, NOT_STARTED, ContentItem, Course, Module, ModuleProgress,
)
from lms_engine.progress import course_percent, module_percent, record_content_completion


def test_first_completion_starts_module_and_enrollment(course, enrollment):
    update = record_content_completion(course, enrollment, "m1", "a")
    mp = enrollment.get_module_progress("m1")
    assert mp.status == IN_PROGRESS
    assert mp.started_at is not None
    assert mp.completed_content_ids == ["a"]
    assert enrollment.status == IN_PROGRESS
    assert enrollment.started_at is not None
    assert update.module_progress == 50
    assert update.course_progress == 25
    assert update.changed


def test_course_progress_counts_all_content(course, enrollment):
    record_content_completion(course, enrollment, "m1", "a")
    record_content_completion(course, enrollment, "m1", "b")
    # 2 of 4 items across the course
    assert enrollment.progress == 50


def test_completion_is_idempotent(course, enrollment):
    record_content_completion(course, enrollment, "m1", "a")
    update = record_content_completion(course, enrollment, "m1", "a")
    assert not update.changed
    assert enrollment.get_module_progress("m1").completed_content_ids == ["a"]


def test_uncomplete_removes_item(course, enrollment):
    record_content_completion(course, enrollment, "m1", "a")
    update = record_content_completion(course, enrollment, "m1", "a", completed=False)
    assert update.changed
    assert enrollment.get_module_progress("m1").completed_content_ids == []
    assert enrollment.progress == 0


def test_uncomplete_without_progress_is_noop(course, enrollment):
    update = record_content_completion(course, enrollment, "m1", "a", completed=False)
    assert not update.changed
    assert enrollment.get_module_progress("m1") is None


def test_unknown_module_raises_without_mutation(course, enrollment):
    with pytest.raises(UnknownModule):
        record_content_completion(course, enrollment, "nope", "a")
    assert enrollment.status == NOT_STARTED
    assert enrollment.module_progress == []


def test_unknown_content_raises(course, enrollment):
    with pytest.raises(UnknownContent) as exc:
        record_content_completion(course, enrollment, "m1", "zzz")
    assert exc.value.content_id == "zzz"
    assert enrollment.module_progress == []


def test_locked_module_rejects_completion(course, enrollment):
    with pytest.raises(ModuleLocked) as exc:
        record_content_completion(course, enrollment, "m2", "c")
    assert exc.value.prerequisite_id == "m1"
    assert enrollment.get_module_progress("m2") is None
    assert enrollment.status == NOT_STARTED


def test_completed_enrollment_keeps_full_progress(course, enrollment):
    for mid, cid in (("m1", "a"), ("m1", "b")):
        record_content_completion(course, enrollment, mid, cid)
    enrollment.status = COMPLETED
    record_content_completion(course, enrollment, "m1", "a", completed=False)
    assert enrollment.progress == 100


def test_module_percent_empty_module():
    module = Module(id="empty", title="Empty")
    assert module_percent(module, None) == 0
    assert module_percent(module, ModuleProgress("empty")) == 0
    assert module_percent(module, ModuleProgress("empty", status=COMPLETED)) == 100


def test_course_percent_with_no_content(enrollment):
    course = Course(id="c1", title="Empty", modules=[Module(id="m", title="M")])
    assert course_percent(course, enrollment) == 0


def test_course_percent_rounds(enrollment):
    course = Course(id="c1", title="Thirds", modules=[
        Module(id="m", title="M", content=[ContentItem("x", "X"), ContentItem("y", "Y"), ContentItem("z", "Z")]),
    ])
    record_content_completion(course, enrollment, "m", "x")
    assert enrollment.progress == 33
    record_content_completion(course, enrollment, "m", "y")
    assert enrollment.progress == 67


def test_course_percent_rounds_halves_up(enrollment):
    items = [ContentItem(f"i{n}", f"Item {n}") for n in range(8)]
    course = Course(id="c1", title="Eighths", modules=[Module(id="m", title="M", content=items)])
    update = record_content_completion(course, enrollment, "m", "i0")
    # 1 of 8 is 12.5
    assert update.module_progress == 13
    assert enrollment.progress == 13
