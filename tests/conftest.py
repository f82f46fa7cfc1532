from datetime import datetime, timedelta, timezone

import pytest

from lms_engine.catalog import load_catalog
from lms_engine.config import EngineConfig
from lms_engine.engine import LearningEngine
from lms_engine.models import (
    MULTI_SELECT, MULTIPLE_CHOICE, SHORT_ANSWER, TRUE_FALSE, Assessment, ContentItem, Course,
    Enrollment, Module, Question,
)


class FakeClock:
    """Controllable clock for engine tests."""

    def __init__(self, start=datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_engine.db")
    return db_path


@pytest.fixture
def catalog():
    return load_catalog()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(tmp_db, catalog, clock):
    return LearningEngine(tmp_db, catalog, EngineConfig(), clock)


def make_quiz(passing_score=70, max_attempts=3):
    return Assessment(
        id="quiz",
        title="Quiz",
        passing_score=passing_score,
        max_attempts=max_attempts,
        questions=[
            Question(id="q1", type=MULTIPLE_CHOICE, options=["a", "b"], correct_answer="a"),
            Question(id="q2", type=TRUE_FALSE, options=["true", "false"], correct_answer="true"),
            Question(id="q3", type=MULTI_SELECT, options=["x", "y", "z"], correct_answer=["x", "z"]),
            Question(id="q4", type=SHORT_ANSWER, correct_answer="Risk register"),
        ],
    )


@pytest.fixture
def course():
    """Three modules: m2 requires m1 and has a quiz, m3 requires m2."""
    return Course(
        id="c1",
        title="Course One",
        category="Compliance & Safety",
        skills=["Hazard Identification"],
        modules=[
            Module(id="m1", title="One", content=[ContentItem("a", "A", duration=10), ContentItem("b", "B", duration=5)]),
            Module(id="m2", title="Two", content=[ContentItem("c", "C", duration=5)],
                   assessment=make_quiz(), unlock_after_module_id="m1"),
            Module(id="m3", title="Three", content=[ContentItem("d", "D", duration=5)], unlock_after_module_id="m2"),
        ],
    )


@pytest.fixture
def enrollment():
    return Enrollment(id="e1", staff_id="s1", course_id="c1")
