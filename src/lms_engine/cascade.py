"""Completion cascade: content -> module -> course -> rewards.

Transitions are enumerated below. Each fires at most once per enrollment;
the enrollment's ``fired_events`` set is the guard, so re-running
``evaluate`` with no new input changes nothing and notifies no one.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from lms_engine.gate import is_locked
from lms_engine.models import (
    COMPLETED, STATUS_ORDER, Assessment, AssessmentAttempt, Course, Enrollment, Module,
    ModuleProgress,
)
from lms_engine.progress import recompute

logger = logging.getLogger(__name__)

ASSESSMENT_PASSED = "assessment_passed"
MODULE_COMPLETED = "module_completed"
COURSE_COMPLETED = "course_completed"
TRANSITIONS = (ASSESSMENT_PASSED, MODULE_COMPLETED, COURSE_COMPLETED)


@dataclass(frozen=True)
class CompletionEvent:
    kind: str
    enrollment_id: str
    subject_id: str  # assessment, module or course id
    occurred_at: str
    score: Optional[int] = None

    @property
    def key(self) -> str:
        return f"{self.kind}:{self.subject_id}"


Handler = Callable[[CompletionEvent, Course, Enrollment, Any], None]


def module_satisfied(module: Module, mp: Optional[ModuleProgress], enrollment: Enrollment) -> bool:
    """All content done and, if the module has an assessment, the latest attempt passed."""
    done = set(mp.completed_content_ids) if mp else set()
    if not set(module.content_ids) <= done:
        return False
    if module.assessment is None:
        return True
    latest = enrollment.latest_attempt(module.assessment.id)
    return latest is not None and latest.passed


def advance_status(enrollment: Enrollment, status: str) -> bool:
    """Move the enrollment status forward; never backward."""
    if STATUS_ORDER[status] <= STATUS_ORDER[enrollment.status]:
        return False
    enrollment.status = status
    return True


class CompletionCascade:
    def __init__(self):
        self._handlers: dict[str, list[Handler]] = {kind: [] for kind in TRANSITIONS}

    @staticmethod
    def _is_completed(enrollment: Enrollment, module_id: str) -> bool:
        mp = enrollment.get_module_progress(module_id)
        return mp is not None and mp.status == COMPLETED

    def subscribe(self, kind: str, handler: Handler) -> None:
        if kind not in self._handlers:
            raise ValueError(f"Unknown transition: {kind}")
        self._handlers[kind].append(handler)

    def _fire(self, kind, course, enrollment, subject_id, stamp, context, score=None):
        event = CompletionEvent(kind, enrollment.id, subject_id, stamp, score)
        if event.key in enrollment.fired_events:
            return None
        enrollment.fired_events.add(event.key)
        logger.info("Enrollment %s: %s %s", enrollment.id, kind, subject_id)
        for handler in self._handlers[kind]:
            handler(event, course, enrollment, context)
        return event

    def assessment_submitted(
        self,
        course: Course,
        enrollment: Enrollment,
        assessment: Assessment,
        attempt: AssessmentAttempt,
        now: Optional[datetime] = None,
        context=None,
    ) -> list[CompletionEvent]:
        """Fire ``assessment_passed`` for the first passing attempt, then re-evaluate."""
        events = []
        if attempt.passed:
            event = self._fire(
                ASSESSMENT_PASSED, course, enrollment, assessment.id,
                attempt.submitted_at, context, score=attempt.score,
            )
            if event:
                events.append(event)
        events += self.evaluate(course, enrollment, now, context)
        return events

    def evaluate(
        self,
        course: Course,
        enrollment: Enrollment,
        now: Optional[datetime] = None,
        context=None,
    ) -> list[CompletionEvent]:
        stamp = (now or datetime.now(timezone.utc)).isoformat()
        events = []
        # Completing one module can unlock another, so repeat until stable.
        progressed = True
        while progressed:
            progressed = False
            for module in course.modules:
                mp = enrollment.get_module_progress(module.id)
                if mp is not None and mp.status == COMPLETED:
                    continue
                if is_locked(module, enrollment) or not module_satisfied(module, mp, enrollment):
                    continue
                if mp is None:
                    mp = ModuleProgress(module_id=module.id, started_at=stamp)
                    enrollment.module_progress.append(mp)
                mp.status = COMPLETED
                mp.completed_at = stamp
                progressed = True
                recompute(course, enrollment)
                event = self._fire(MODULE_COMPLETED, course, enrollment, module.id, stamp, context)
                if event:
                    events.append(event)

        all_done = bool(course.modules) and all(
            self._is_completed(enrollment, m.id) for m in course.modules
        )
        if all_done and enrollment.status != COMPLETED:
            advance_status(enrollment, COMPLETED)
            enrollment.completed_at = stamp
            recompute(course, enrollment)
            event = self._fire(COURSE_COMPLETED, course, enrollment, course.id, stamp, context)
            if event:
                events.append(event)
        return events
