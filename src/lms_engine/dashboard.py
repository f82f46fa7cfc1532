"""Learner analytics and enrollment statistics."""
from datetime import date

from lms_engine.db import get_connection
from lms_engine.gamification import calculate_level, level_title
from lms_engine.gate import is_locked
from lms_engine.models import COMPLETED, Course, Enrollment
from lms_engine.progress import module_percent


def get_completion_label(progress: float) -> str:
    if progress >= 100:
        return "COMPLETE"
    elif progress >= 50:
        return "ON TRACK"
    elif progress > 0:
        return "STARTED"
    return "NOT STARTED"


def get_completion_color(progress: float) -> str:
    if progress >= 100:
        return "green"
    elif progress >= 50:
        return "yellow"
    elif progress > 0:
        return "dark_orange"
    return "red"


def get_learner_analytics(db_path: str, staff_id: str) -> dict:
    conn = get_connection(db_path)
    counts = conn.execute(
        """SELECT COUNT(*) as enrolled,
        SUM(CASE WHEN status = 'completed' THEN 1 ELSE 0 END) as completed,
        SUM(CASE WHEN status = 'in_progress' THEN 1 ELSE 0 END) as in_progress
        FROM enrollments WHERE staff_id = ?""",
        (staff_id,),
    ).fetchone()
    avg_row = conn.execute(
        """SELECT AVG(a.score) as avg FROM assessment_attempts a
        JOIN enrollments e ON a.enrollment_id = e.id WHERE e.staff_id = ?""",
        (staff_id,),
    ).fetchone()
    certs = conn.execute("SELECT COUNT(*) FROM certificates WHERE staff_id = ?", (staff_id,)).fetchone()[0]
    profile = conn.execute("SELECT * FROM gamification_profiles WHERE staff_id = ?", (staff_id,)).fetchone()
    badges = conn.execute("SELECT COUNT(*) FROM user_badges WHERE staff_id = ?", (staff_id,)).fetchone()[0]
    conn.close()

    total_xp = profile["total_xp"] if profile else 0
    level = calculate_level(total_xp)
    return {
        "enrolled": counts["enrolled"],
        "completed": counts["completed"] or 0,
        "in_progress": counts["in_progress"] or 0,
        "avg_score": round(avg_row["avg"], 1) if avg_row["avg"] is not None else 0.0,
        "certificates": certs,
        "badges": badges,
        "current_streak": profile["current_streak"] if profile else 0,
        "longest_streak": profile["longest_streak"] if profile else 0,
        "minutes_learned": profile["minutes_learned"] if profile else 0,
        "total_xp": total_xp,
        "level": level.level,
        "level_title": level_title(level.level),
    }


def get_enrollment_overview(course: Course, enrollment: Enrollment) -> list[dict]:
    """One row per module, in course order."""
    rows = []
    for module in course.modules:
        mp = enrollment.get_module_progress(module.id)
        percent = module_percent(module, mp)
        rows.append({
            "module_id": module.id,
            "title": module.title,
            "status": mp.status if mp else "not_started",
            "progress": percent,
            "locked": is_locked(module, enrollment),
            "has_assessment": module.assessment is not None,
            "label": get_completion_label(percent),
        })
    return rows


def get_overdue_enrollments(db_path: str, today: date) -> list[dict]:
    """Unfinished enrollments whose due date is before ``today``."""
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT id, staff_id, course_id, status, progress, due_date FROM enrollments
        WHERE due_date IS NOT NULL AND due_date < ? AND status != ?
        ORDER BY due_date, staff_id""",
        (today.isoformat(), COMPLETED),
    ).fetchall()
    conn.close()
    return [dict(r) for r in rows]
