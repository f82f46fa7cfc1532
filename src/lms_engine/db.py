"""Database initialization and connection management."""
import sqlite3
from contextlib import contextmanager
from pathlib import Path

DEFAULT_DB_PATH = str(Path.home() / ".lms_engine" / "engine.db")

SCHEMA = """
CREATE TABLE IF NOT EXISTS enrollments (
    id TEXT PRIMARY KEY,
    staff_id TEXT NOT NULL,
    course_id TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'not_started',
    progress INTEGER NOT NULL DEFAULT 0,
    due_date TEXT,
    assigned_by TEXT,
    started_at TEXT,
    completed_at TEXT,
    certificate_id TEXT,
    created_at TEXT,
    UNIQUE(staff_id, course_id)
);

CREATE TABLE IF NOT EXISTS module_progress (
    enrollment_id TEXT NOT NULL REFERENCES enrollments(id),
    module_id TEXT NOT NULL,
    position INTEGER NOT NULL,
    status TEXT NOT NULL DEFAULT 'not_started',
    completed_content_ids TEXT NOT NULL DEFAULT '[]',
    progress INTEGER NOT NULL DEFAULT 0,
    started_at TEXT,
    completed_at TEXT,
    PRIMARY KEY (enrollment_id, module_id)
);

CREATE TABLE IF NOT EXISTS assessment_attempts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    enrollment_id TEXT NOT NULL REFERENCES enrollments(id),
    assessment_id TEXT NOT NULL,
    attempt_number INTEGER NOT NULL,
    answers TEXT NOT NULL,
    results TEXT NOT NULL DEFAULT '{}',
    score INTEGER NOT NULL,
    passed INTEGER NOT NULL,
    submitted_at TEXT NOT NULL,
    UNIQUE(enrollment_id, assessment_id, attempt_number)
);

CREATE TABLE IF NOT EXISTS completion_events (
    enrollment_id TEXT NOT NULL REFERENCES enrollments(id),
    event_key TEXT NOT NULL,
    PRIMARY KEY (enrollment_id, event_key)
);

CREATE TABLE IF NOT EXISTS gamification_profiles (
    staff_id TEXT PRIMARY KEY,
    total_xp INTEGER NOT NULL DEFAULT 0,
    current_streak INTEGER NOT NULL DEFAULT 0,
    longest_streak INTEGER NOT NULL DEFAULT 0,
    streak_freezes_available INTEGER NOT NULL DEFAULT 0,
    last_goal_date TEXT,
    courses_completed INTEGER NOT NULL DEFAULT 0,
    category_completions TEXT NOT NULL DEFAULT '{}',
    perfect_scores INTEGER NOT NULL DEFAULT 0,
    high_scores INTEGER NOT NULL DEFAULT 0,
    minutes_learned INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS xp_transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    staff_id TEXT NOT NULL REFERENCES gamification_profiles(staff_id),
    type TEXT NOT NULL,
    amount INTEGER NOT NULL CHECK (amount >= 0),
    description TEXT,
    source_id TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS user_badges (
    staff_id TEXT NOT NULL REFERENCES gamification_profiles(staff_id),
    badge_id TEXT NOT NULL,
    earned_at TEXT,
    PRIMARY KEY (staff_id, badge_id)
);

CREATE TABLE IF NOT EXISTS daily_activity (
    staff_id TEXT NOT NULL,
    activity_date TEXT NOT NULL,
    minutes_learned INTEGER NOT NULL DEFAULT 0,
    goal_met INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (staff_id, activity_date)
);

CREATE TABLE IF NOT EXISTS certificates (
    id TEXT PRIMARY KEY,
    certificate_number TEXT NOT NULL UNIQUE,
    staff_id TEXT NOT NULL,
    course_id TEXT NOT NULL,
    enrollment_id TEXT NOT NULL UNIQUE REFERENCES enrollments(id),
    issued_at TEXT NOT NULL,
    expires_at TEXT,
    status TEXT DEFAULT 'active'
);

CREATE TABLE IF NOT EXISTS learning_goals (
    id TEXT PRIMARY KEY,
    staff_id TEXT NOT NULL,
    title TEXT NOT NULL,
    category TEXT,
    progress INTEGER NOT NULL DEFAULT 0,
    status TEXT DEFAULT 'active'
);
"""


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled."""
    conn = sqlite3.connect(db_path, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.close()


@contextmanager
def transaction(db_path: str = DEFAULT_DB_PATH):
    """Yield a connection inside one write transaction.

    BEGIN IMMEDIATE takes the write lock up front, so concurrent writers
    queue instead of overwriting each other. Any exception rolls back.
    """
    conn = get_connection(db_path)
    try:
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")
    finally:
        conn.close()
