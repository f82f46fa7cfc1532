"""Transactional entry points for the learning engine.

Every mutating call is serialized per enrollment (and, for rewards, per
staff member) and runs inside one SQLite transaction: it either commits
the whole cascade or leaves nothing behind.
"""
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from lms_engine import repository as repo
from lms_engine.cascade import (
    ASSESSMENT_PASSED, COURSE_COMPLETED, MODULE_COMPLETED, CompletionCascade, CompletionEvent,
    advance_status,
)
from lms_engine.catalog import Catalog, load_catalog
from lms_engine.certificates import issue_certificate
from lms_engine.config import EngineConfig
from lms_engine.db import DEFAULT_DB_PATH, get_connection, init_db, transaction
from lms_engine.errors import EngineError, ModuleLocked, UnknownAssessment, UnknownEnrollment
from lms_engine.gamification import GamificationLedger
from lms_engine.gate import is_locked
from lms_engine.goals import apply_goal_progress, link_goals
from lms_engine.grader import GradeResult, answer_review, build_attempt, grade
from lms_engine.models import (
    IN_PROGRESS, AssessmentAttempt, Course, Enrollment, GamificationProfile, LearningGoal,
)
from lms_engine.progress import ProgressUpdate, record_content_completion

logger = logging.getLogger(__name__)


@dataclass
class CompletionResult:
    update: ProgressUpdate
    events: list[CompletionEvent] = field(default_factory=list)


@dataclass
class SubmissionResult:
    result: GradeResult
    attempt: AssessmentAttempt
    review: list[dict]
    events: list[CompletionEvent] = field(default_factory=list)


@dataclass
class _Session:
    conn: object
    enrollment: Enrollment
    course: Course
    now: datetime
    profile: Optional[GamificationProfile] = None


class LearningEngine:
    def __init__(
        self,
        db_path: str = DEFAULT_DB_PATH,
        catalog: Optional[Catalog] = None,
        config: Optional[EngineConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db_path = db_path
        self.catalog = catalog or load_catalog()
        self.config = config or EngineConfig()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.ledger = GamificationLedger(self.config, self.catalog.badges)
        self.locks = repo.OwnerLocks()
        self.cascade = CompletionCascade()
        self.cascade.subscribe(ASSESSMENT_PASSED, self._on_assessment_passed)
        self.cascade.subscribe(MODULE_COMPLETED, self._on_module_completed)
        self.cascade.subscribe(COURSE_COMPLETED, self._on_course_completed)
        self._listeners: list[Callable[[CompletionEvent], None]] = []
        init_db(db_path)

    def add_listener(self, listener: Callable[[CompletionEvent], None]) -> None:
        """Register a callback that receives events after they are committed."""
        self._listeners.append(listener)

    def _notify(self, events: list[CompletionEvent]) -> None:
        for event in events:
            for listener in self._listeners:
                listener(event)

    # --- Sessions ---

    def _staff_for(self, enrollment_id: str) -> str:
        conn = get_connection(self.db_path)
        row = conn.execute("SELECT staff_id FROM enrollments WHERE id = ?", (enrollment_id,)).fetchone()
        conn.close()
        if not row:
            raise UnknownEnrollment(enrollment_id)
        return row["staff_id"]

    @contextmanager
    def _session(self, enrollment_id: str):
        staff_id = self._staff_for(enrollment_id)
        with self.locks.hold(enrollment_id, staff_id), transaction(self.db_path) as conn:
            enrollment = repo.load_enrollment(conn, enrollment_id)
            course = self.catalog.get_course(enrollment.course_id)
            session = _Session(conn, enrollment, course, self.clock())
            try:
                yield session
            except EngineError as e:
                logger.warning("Rejected change to enrollment %s: %s", enrollment_id, e)
                raise
            repo.save_enrollment(conn, enrollment)
            if session.profile is not None:
                repo.save_profile(conn, session.profile, session.now)

    def _profile(self, session: _Session) -> GamificationProfile:
        if session.profile is None:
            session.profile = repo.get_or_create_profile(
                session.conn, session.enrollment.staff_id, self.config.initial_streak_freezes
            )
        return session.profile

    def _credit_minutes(self, conn, profile: GamificationProfile, minutes: int, now: datetime) -> None:
        day = self.config.local_date(now).isoformat()
        activity = repo.get_activity(conn, profile.staff_id, day)
        activity.minutes_learned += minutes
        profile.minutes_learned += minutes
        self.ledger.record_activity(profile, activity, now)
        repo.save_activity(conn, profile.staff_id, activity)

    # --- Cascade handlers ---

    def _on_assessment_passed(self, event, course, enrollment, session):
        _, assessment = course.find_assessment(event.subject_id)
        self.ledger.assessment_passed(self._profile(session), assessment, event.score, session.now)

    def _on_module_completed(self, event, course, enrollment, session):
        module = course.get_module(event.subject_id)
        self.ledger.award(
            self._profile(session), "module_complete", f"Completed module: {module.title}",
            session.now, module.id,
        )

    def _on_course_completed(self, event, course, enrollment, session):
        conn = session.conn
        cert = issue_certificate(enrollment, course, session.now)
        if cert is not None:
            repo.insert_certificate(conn, cert)
            enrollment.certificate_id = cert.id
            logger.info("Issued certificate %s to %s", cert.certificate_number, enrollment.staff_id)
        profile = self._profile(session)
        self.ledger.course_completed(profile, course, session.now)
        self._credit_minutes(conn, profile, 0, session.now)
        goals = repo.list_goals(conn, enrollment.staff_id)
        for goal in link_goals(goals, course, self.config.goal_category):
            apply_goal_progress(goal, self.config.goal_progress_step)
            repo.save_goal(conn, goal)
            logger.info("Goal %s progress -> %d%%", goal.id, goal.progress)

    # --- Operations ---

    def enroll(
        self,
        staff_id: str,
        course_id: str,
        due_date: Optional[str] = None,
        assigned_by: Optional[str] = None,
    ) -> Enrollment:
        """Create a not-started enrollment; enrolling twice returns the existing one."""
        self.catalog.get_course(course_id)
        with self.locks.hold(staff_id), transaction(self.db_path) as conn:
            existing = repo.find_enrollment(conn, staff_id, course_id)
            if existing:
                return existing
            enrollment = Enrollment(
                id=str(uuid.uuid4()),
                staff_id=staff_id,
                course_id=course_id,
                due_date=due_date,
                assigned_by=assigned_by,
                created_at=self.clock().isoformat(),
            )
            repo.insert_enrollment(conn, enrollment)
        logger.info("Enrolled %s in %s (%s)", staff_id, course_id, enrollment.id)
        return enrollment

    def complete_content(
        self, enrollment_id: str, module_id: str, content_id: str, completed: bool = True
    ) -> CompletionResult:
        with self._session(enrollment_id) as s:
            update = record_content_completion(s.course, s.enrollment, module_id, content_id, completed, s.now)
            if completed and update.changed:
                module = s.course.get_module(module_id)
                minutes = next(c.duration for c in module.content if c.id == content_id)
                self._credit_minutes(s.conn, self._profile(s), minutes, s.now)
            events = self.cascade.evaluate(s.course, s.enrollment, s.now, s)
        self._notify(events)
        return CompletionResult(update, events)

    def submit_assessment(self, enrollment_id: str, assessment_id: str, answers: dict) -> SubmissionResult:
        with self._session(enrollment_id) as s:
            module, assessment = s.course.find_assessment(assessment_id)
            if assessment is None:
                raise UnknownAssessment(assessment_id)
            if is_locked(module, s.enrollment):
                raise ModuleLocked(module.id, module.unlock_after_module_id)
            prior = len(s.enrollment.attempts_for(assessment_id))
            result = grade(assessment, answers, prior, self.config.normalize_short_answers)
            attempt = build_attempt(assessment, result, answers, prior + 1, s.now)
            s.enrollment.attempts.append(attempt)
            if advance_status(s.enrollment, IN_PROGRESS):
                s.enrollment.started_at = s.now.isoformat()
            events = self.cascade.assessment_submitted(s.course, s.enrollment, assessment, attempt, s.now, s)
        self._notify(events)
        return SubmissionResult(result, attempt, answer_review(assessment, result), events)

    def evaluate(self, enrollment_id: str) -> list[CompletionEvent]:
        """Re-run the cascade; a no-op when nothing new has happened."""
        with self._session(enrollment_id) as s:
            events = self.cascade.evaluate(s.course, s.enrollment, s.now, s)
        self._notify(events)
        return events

    def record_learning_minutes(self, staff_id: str, minutes: int) -> GamificationProfile:
        """Credit learning time that did not come from a content completion."""
        with self.locks.hold(staff_id), transaction(self.db_path) as conn:
            now = self.clock()
            profile = repo.get_or_create_profile(conn, staff_id, self.config.initial_streak_freezes)
            self._credit_minutes(conn, profile, minutes, now)
            repo.save_profile(conn, profile, now)
        return profile

    def add_goal(self, staff_id: str, title: str, category: str = "") -> LearningGoal:
        goal = LearningGoal(id=str(uuid.uuid4()), staff_id=staff_id, title=title, category=category)
        with self.locks.hold(staff_id), transaction(self.db_path) as conn:
            repo.insert_goal(conn, goal)
        return goal

    # --- Queries ---

    def get_enrollment(self, enrollment_id: str) -> Enrollment:
        conn = get_connection(self.db_path)
        enrollment = repo.load_enrollment(conn, enrollment_id)
        conn.close()
        if enrollment is None:
            raise UnknownEnrollment(enrollment_id)
        return enrollment

    def list_enrollments(self, staff_id: str) -> list[Enrollment]:
        conn = get_connection(self.db_path)
        enrollments = repo.list_enrollments(conn, staff_id)
        conn.close()
        return enrollments

    def get_profile(self, staff_id: str) -> GamificationProfile:
        conn = get_connection(self.db_path)
        profile = repo.load_profile(conn, staff_id)
        conn.close()
        return profile or GamificationProfile(
            staff_id=staff_id, streak_freezes_available=self.config.initial_streak_freezes
        )

    def list_goals(self, staff_id: str) -> list[LearningGoal]:
        conn = get_connection(self.db_path)
        goals = repo.list_goals(conn, staff_id)
        conn.close()
        return goals

    def list_certificates(self, staff_id: str):
        conn = get_connection(self.db_path)
        certs = repo.list_certificates(conn, staff_id)
        conn.close()
        return certs
