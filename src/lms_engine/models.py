"""Data classes for the learning engine domain model."""
from dataclasses import dataclass, field
from typing import Optional

NOT_STARTED = "not_started"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"

STATUS_ORDER = {NOT_STARTED: 0, IN_PROGRESS: 1, COMPLETED: 2}

CONTENT_TYPES = ("video", "document", "quiz", "interactive", "external_link", "scorm", "webinar")

MULTIPLE_CHOICE = "multiple_choice"
TRUE_FALSE = "true_false"
MULTI_SELECT = "multi_select"
SHORT_ANSWER = "short_answer"
QUESTION_TYPES = (MULTIPLE_CHOICE, TRUE_FALSE, MULTI_SELECT, SHORT_ANSWER)

BADGE_CRITERIA = (
    "courses_completed", "streak_days", "total_minutes", "perfect_score", "assessments_aced",
    "category_mastery", "total_xp", "level",
)


def percent(part: int, whole: int) -> int:
    """Whole-number percentage, halves rounded up (5 of 8 is 63)."""
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


@dataclass
class ContentItem:
    id: str
    title: str
    type: str = "document"
    duration: int = 0  # minutes
    mandatory: bool = True


@dataclass
class Question:
    id: str
    type: str
    text: str = ""
    options: list[str] = field(default_factory=list)
    correct_answer: str | list[str] = ""
    points: int = 1
    explanation: str = ""


@dataclass
class Assessment:
    id: str
    title: str = ""
    questions: list[Question] = field(default_factory=list)
    passing_score: int = 70
    max_attempts: int = 3
    shuffle_questions: bool = False
    show_correct_answers: bool = True


@dataclass
class Module:
    id: str
    title: str
    content: list[ContentItem] = field(default_factory=list)
    assessment: Optional[Assessment] = None
    unlock_after_module_id: Optional[str] = None

    @property
    def content_ids(self) -> list[str]:
        return [c.id for c in self.content]


@dataclass
class Course:
    id: str
    title: str
    modules: list[Module] = field(default_factory=list)
    category: str = ""
    difficulty: str = "beginner"
    skills: list[str] = field(default_factory=list)
    certificate_on_completion: bool = True
    validity_period_days: Optional[int] = None

    def get_module(self, module_id: str) -> Optional[Module]:
        for module in self.modules:
            if module.id == module_id:
                return module
        return None

    def find_assessment(self, assessment_id: str) -> tuple[Optional[Module], Optional[Assessment]]:
        for module in self.modules:
            if module.assessment and module.assessment.id == assessment_id:
                return module, module.assessment
        return None, None

    @property
    def total_content(self) -> int:
        return sum(len(m.content) for m in self.modules)


@dataclass
class ModuleProgress:
    module_id: str
    status: str = NOT_STARTED
    completed_content_ids: list[str] = field(default_factory=list)
    progress: int = 0
    started_at: Optional[str] = None
    completed_at: Optional[str] = None


@dataclass
class AssessmentAttempt:
    assessment_id: str
    attempt_number: int
    answers: dict
    score: int
    passed: bool
    submitted_at: str
    results: dict = field(default_factory=dict)  # question id -> correct


@dataclass
class Enrollment:
    id: str
    staff_id: str
    course_id: str
    status: str = NOT_STARTED
    progress: int = 0
    module_progress: list[ModuleProgress] = field(default_factory=list)
    attempts: list[AssessmentAttempt] = field(default_factory=list)
    due_date: Optional[str] = None
    assigned_by: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    certificate_id: Optional[str] = None
    created_at: Optional[str] = None
    fired_events: set[str] = field(default_factory=set)

    def get_module_progress(self, module_id: str) -> Optional[ModuleProgress]:
        for mp in self.module_progress:
            if mp.module_id == module_id:
                return mp
        return None

    def attempts_for(self, assessment_id: str) -> list[AssessmentAttempt]:
        return [a for a in self.attempts if a.assessment_id == assessment_id]

    def latest_attempt(self, assessment_id: str) -> Optional[AssessmentAttempt]:
        attempts = self.attempts_for(assessment_id)
        return attempts[-1] if attempts else None


@dataclass(frozen=True)
class XPTransaction:
    staff_id: str
    type: str
    amount: int
    description: str
    created_at: str
    source_id: Optional[str] = None


@dataclass
class BadgeCriteria:
    type: str
    threshold: int = 1
    category: Optional[str] = None


@dataclass
class Badge:
    id: str
    name: str
    criteria: BadgeCriteria
    description: str = ""
    rarity: str = "common"
    xp_reward: int = 0


@dataclass
class DailyActivity:
    date: str  # ISO date in the streak timezone
    minutes_learned: int = 0
    goal_met: bool = False


@dataclass
class GamificationProfile:
    staff_id: str
    total_xp: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    streak_freezes_available: int = 0
    last_goal_date: Optional[str] = None
    badges: set[str] = field(default_factory=set)
    transactions: list[XPTransaction] = field(default_factory=list)
    courses_completed: int = 0
    category_completions: dict[str, int] = field(default_factory=dict)
    perfect_scores: int = 0
    high_scores: int = 0
    minutes_learned: int = 0


@dataclass
class Certificate:
    id: str
    certificate_number: str
    staff_id: str
    course_id: str
    enrollment_id: str
    issued_at: str
    expires_at: Optional[str] = None
    status: str = "active"


@dataclass
class LearningGoal:
    id: str
    staff_id: str
    title: str
    category: str = ""
    progress: int = 0
    status: str = "active"
