"""Row mappers for enrollments, gamification profiles, goals and certificates.

Functions take an open connection so that a caller can group several of
them into one transaction (see ``db.transaction``).
"""
import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional

from lms_engine.models import (
    AssessmentAttempt, Certificate, DailyActivity, Enrollment, GamificationProfile,
    LearningGoal, ModuleProgress, XPTransaction,
)


class OwnerLocks:
    """One lock per owner key (enrollment id, staff id).

    A key's lock exists only while some thread holds or waits on it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, list] = {}  # key -> [RLock, users]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _checkout(self, key: str) -> threading.RLock:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.RLock(), 0])
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: str) -> None:
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, *keys: str):
        """Acquire locks in the order given; callers always pass enrollment before staff."""
        held = []
        try:
            for key in keys:
                lock = self._checkout(key)
                try:
                    lock.acquire()
                except BaseException:
                    self._checkin(key)
                    raise
                held.append((key, lock))
            yield
        finally:
            for key, lock in reversed(held):
                lock.release()
                self._checkin(key)


# --- Enrollments ---


def insert_enrollment(conn: sqlite3.Connection, enrollment: Enrollment) -> None:
    conn.execute(
        """INSERT INTO enrollments
        (id, staff_id, course_id, status, progress, due_date, assigned_by, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        (enrollment.id, enrollment.staff_id, enrollment.course_id, enrollment.status,
         enrollment.progress, enrollment.due_date, enrollment.assigned_by, enrollment.created_at),
    )


def _enrollment_from_row(conn: sqlite3.Connection, row: sqlite3.Row) -> Enrollment:
    mp_rows = conn.execute(
        "SELECT * FROM module_progress WHERE enrollment_id = ? ORDER BY position", (row["id"],)
    ).fetchall()
    attempt_rows = conn.execute(
        "SELECT * FROM assessment_attempts WHERE enrollment_id = ? ORDER BY id", (row["id"],)
    ).fetchall()
    event_rows = conn.execute(
        "SELECT event_key FROM completion_events WHERE enrollment_id = ?", (row["id"],)
    ).fetchall()
    return Enrollment(
        id=row["id"],
        staff_id=row["staff_id"],
        course_id=row["course_id"],
        status=row["status"],
        progress=row["progress"],
        module_progress=[
            ModuleProgress(
                module_id=r["module_id"],
                status=r["status"],
                completed_content_ids=json.loads(r["completed_content_ids"]),
                progress=r["progress"],
                started_at=r["started_at"],
                completed_at=r["completed_at"],
            )
            for r in mp_rows
        ],
        attempts=[
            AssessmentAttempt(
                assessment_id=r["assessment_id"],
                attempt_number=r["attempt_number"],
                answers=json.loads(r["answers"]),
                score=r["score"],
                passed=bool(r["passed"]),
                submitted_at=r["submitted_at"],
                results=json.loads(r["results"]),
            )
            for r in attempt_rows
        ],
        due_date=row["due_date"],
        assigned_by=row["assigned_by"],
        started_at=row["started_at"],
        completed_at=row["completed_at"],
        certificate_id=row["certificate_id"],
        created_at=row["created_at"],
        fired_events={r["event_key"] for r in event_rows},
    )


def load_enrollment(conn: sqlite3.Connection, enrollment_id: str) -> Optional[Enrollment]:
    row = conn.execute("SELECT * FROM enrollments WHERE id = ?", (enrollment_id,)).fetchone()
    return _enrollment_from_row(conn, row) if row else None


def find_enrollment(conn: sqlite3.Connection, staff_id: str, course_id: str) -> Optional[Enrollment]:
    row = conn.execute(
        "SELECT * FROM enrollments WHERE staff_id = ? AND course_id = ?", (staff_id, course_id)
    ).fetchone()
    return _enrollment_from_row(conn, row) if row else None


def list_enrollments(conn: sqlite3.Connection, staff_id: str) -> list[Enrollment]:
    rows = conn.execute(
        "SELECT * FROM enrollments WHERE staff_id = ? ORDER BY created_at, id", (staff_id,)
    ).fetchall()
    return [_enrollment_from_row(conn, r) for r in rows]


def save_enrollment(conn: sqlite3.Connection, enrollment: Enrollment) -> None:
    """Write back an enrollment. Attempts and fired events are append-only."""
    conn.execute(
        """UPDATE enrollments SET status=?, progress=?, due_date=?, started_at=?,
        completed_at=?, certificate_id=? WHERE id=?""",
        (enrollment.status, enrollment.progress, enrollment.due_date, enrollment.started_at,
         enrollment.completed_at, enrollment.certificate_id, enrollment.id),
    )
    conn.execute("DELETE FROM module_progress WHERE enrollment_id = ?", (enrollment.id,))
    for position, mp in enumerate(enrollment.module_progress):
        conn.execute(
            """INSERT INTO module_progress
            (enrollment_id, module_id, position, status, completed_content_ids, progress,
             started_at, completed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (enrollment.id, mp.module_id, position, mp.status, json.dumps(mp.completed_content_ids),
             mp.progress, mp.started_at, mp.completed_at),
        )
    for a in enrollment.attempts:
        conn.execute(
            """INSERT OR IGNORE INTO assessment_attempts
            (enrollment_id, assessment_id, attempt_number, answers, results, score, passed, submitted_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (enrollment.id, a.assessment_id, a.attempt_number, json.dumps(a.answers),
             json.dumps(a.results), a.score, int(a.passed), a.submitted_at),
        )
    for key in enrollment.fired_events:
        conn.execute(
            "INSERT OR IGNORE INTO completion_events (enrollment_id, event_key) VALUES (?, ?)",
            (enrollment.id, key),
        )


# --- Gamification profiles ---


def load_profile(conn: sqlite3.Connection, staff_id: str) -> Optional[GamificationProfile]:
    row = conn.execute("SELECT * FROM gamification_profiles WHERE staff_id = ?", (staff_id,)).fetchone()
    if not row:
        return None
    txns = conn.execute(
        "SELECT * FROM xp_transactions WHERE staff_id = ? ORDER BY id", (staff_id,)
    ).fetchall()
    badges = conn.execute("SELECT badge_id FROM user_badges WHERE staff_id = ?", (staff_id,)).fetchall()
    return GamificationProfile(
        staff_id=staff_id,
        total_xp=row["total_xp"],
        current_streak=row["current_streak"],
        longest_streak=row["longest_streak"],
        streak_freezes_available=row["streak_freezes_available"],
        last_goal_date=row["last_goal_date"],
        badges={b["badge_id"] for b in badges},
        transactions=[
            XPTransaction(
                staff_id=staff_id, type=t["type"], amount=t["amount"],
                description=t["description"], created_at=t["created_at"], source_id=t["source_id"],
            )
            for t in txns
        ],
        courses_completed=row["courses_completed"],
        category_completions=json.loads(row["category_completions"]),
        perfect_scores=row["perfect_scores"],
        high_scores=row["high_scores"],
        minutes_learned=row["minutes_learned"],
    )


def get_or_create_profile(conn: sqlite3.Connection, staff_id: str, streak_freezes: int = 0) -> GamificationProfile:
    profile = load_profile(conn, staff_id)
    if profile is None:
        conn.execute(
            "INSERT INTO gamification_profiles (staff_id, streak_freezes_available) VALUES (?, ?)",
            (staff_id, streak_freezes),
        )
        profile = GamificationProfile(staff_id=staff_id, streak_freezes_available=streak_freezes)
    return profile


def save_profile(conn: sqlite3.Connection, profile: GamificationProfile, now: Optional[datetime] = None) -> None:
    """Write back profile counters, append new XP transactions and badges."""
    conn.execute(
        """UPDATE gamification_profiles SET total_xp=?, current_streak=?, longest_streak=?,
        streak_freezes_available=?, last_goal_date=?, courses_completed=?, category_completions=?,
        perfect_scores=?, high_scores=?, minutes_learned=? WHERE staff_id=?""",
        (profile.total_xp, profile.current_streak, profile.longest_streak,
         profile.streak_freezes_available, profile.last_goal_date, profile.courses_completed,
         json.dumps(profile.category_completions), profile.perfect_scores, profile.high_scores,
         profile.minutes_learned, profile.staff_id),
    )
    stored = conn.execute(
        "SELECT COUNT(*) FROM xp_transactions WHERE staff_id = ?", (profile.staff_id,)
    ).fetchone()[0]
    for t in profile.transactions[stored:]:
        conn.execute(
            """INSERT INTO xp_transactions (staff_id, type, amount, description, source_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?)""",
            (t.staff_id, t.type, t.amount, t.description, t.source_id, t.created_at),
        )
    earned_at = (now or datetime.now(timezone.utc)).isoformat()
    for badge_id in profile.badges:
        conn.execute(
            "INSERT OR IGNORE INTO user_badges (staff_id, badge_id, earned_at) VALUES (?, ?, ?)",
            (profile.staff_id, badge_id, earned_at),
        )


def get_activity(conn: sqlite3.Connection, staff_id: str, activity_date: str) -> DailyActivity:
    row = conn.execute(
        "SELECT * FROM daily_activity WHERE staff_id = ? AND activity_date = ?", (staff_id, activity_date)
    ).fetchone()
    if not row:
        return DailyActivity(date=activity_date)
    return DailyActivity(date=activity_date, minutes_learned=row["minutes_learned"], goal_met=bool(row["goal_met"]))


def save_activity(conn: sqlite3.Connection, staff_id: str, activity: DailyActivity) -> None:
    conn.execute(
        """INSERT INTO daily_activity (staff_id, activity_date, minutes_learned, goal_met)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(staff_id, activity_date) DO UPDATE SET minutes_learned=?, goal_met=?""",
        (staff_id, activity.date, activity.minutes_learned, int(activity.goal_met),
         activity.minutes_learned, int(activity.goal_met)),
    )


# --- Goals and certificates ---


def insert_goal(conn: sqlite3.Connection, goal: LearningGoal) -> None:
    conn.execute(
        "INSERT INTO learning_goals (id, staff_id, title, category, progress, status) VALUES (?, ?, ?, ?, ?, ?)",
        (goal.id, goal.staff_id, goal.title, goal.category, goal.progress, goal.status),
    )


def list_goals(conn: sqlite3.Connection, staff_id: str) -> list[LearningGoal]:
    rows = conn.execute("SELECT * FROM learning_goals WHERE staff_id = ? ORDER BY id", (staff_id,)).fetchall()
    return [
        LearningGoal(id=r["id"], staff_id=r["staff_id"], title=r["title"], category=r["category"] or "",
                     progress=r["progress"], status=r["status"])
        for r in rows
    ]


def save_goal(conn: sqlite3.Connection, goal: LearningGoal) -> None:
    conn.execute(
        "UPDATE learning_goals SET progress = ?, status = ? WHERE id = ?",
        (goal.progress, goal.status, goal.id),
    )


def insert_certificate(conn: sqlite3.Connection, cert: Certificate) -> None:
    conn.execute(
        """INSERT INTO certificates
        (id, certificate_number, staff_id, course_id, enrollment_id, issued_at, expires_at, status)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        (cert.id, cert.certificate_number, cert.staff_id, cert.course_id, cert.enrollment_id,
         cert.issued_at, cert.expires_at, cert.status),
    )


def list_certificates(conn: sqlite3.Connection, staff_id: str) -> list[Certificate]:
    rows = conn.execute(
        "SELECT * FROM certificates WHERE staff_id = ? ORDER BY issued_at", (staff_id,)
    ).fetchall()
    return [
        Certificate(id=r["id"], certificate_number=r["certificate_number"], staff_id=r["staff_id"],
                    course_id=r["course_id"], enrollment_id=r["enrollment_id"], issued_at=r["issued_at"],
                    expires_at=r["expires_at"], status=r["status"])
        for r in rows
    ]
