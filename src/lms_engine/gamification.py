"""XP, levels, learning streaks and badges."""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional

from lms_engine.config import EngineConfig
from lms_engine.models import Badge, DailyActivity, GamificationProfile, XPTransaction

logger = logging.getLogger(__name__)

# Total XP required to reach each level; index 0 is level 1.
XP_PER_LEVEL = [
    0, 100, 250, 500, 850, 1300, 1900, 2600, 3500, 4600,
    5900, 7400, 9100, 11000, 13200, 15700, 18500, 21600, 25000, 30000,
]
MAX_LEVEL = len(XP_PER_LEVEL)

LEVEL_TITLES = [
    "Newcomer", "Apprentice", "Learner", "Student", "Scholar",
    "Expert", "Master", "Sage", "Guru", "Legend",
]


@dataclass
class LevelInfo:
    level: int
    current_xp: int  # XP earned inside the current level
    next_level_xp: int  # total XP at which the next level starts
    progress_percent: float


@dataclass
class StreakUpdate:
    extended: bool = False
    reset: bool = False
    freezes_used: int = 0


def calculate_level(total_xp: int) -> LevelInfo:
    level = 1
    for i, threshold in enumerate(XP_PER_LEVEL):
        if total_xp >= threshold:
            level = i + 1
        else:
            break
    floor = XP_PER_LEVEL[level - 1]
    if level == MAX_LEVEL:
        return LevelInfo(level, total_xp - floor, floor, 100.0)
    ceiling = XP_PER_LEVEL[level]
    current = total_xp - floor
    percent = min(100.0, current / (ceiling - floor) * 100)
    return LevelInfo(level, current, ceiling, round(percent, 1))


def level_title(level: int) -> str:
    index = min((level - 1) // 2, len(LEVEL_TITLES) - 1)
    return LEVEL_TITLES[max(index, 0)]


def award_xp(
    profile: GamificationProfile,
    type: str,
    amount: int,
    description: str,
    now: Optional[datetime] = None,
    source_id: Optional[str] = None,
) -> XPTransaction:
    """Append an XP transaction. Totals never decrease."""
    if amount < 0:
        raise ValueError(f"XP amount must be non-negative, got {amount}")
    txn = XPTransaction(
        staff_id=profile.staff_id,
        type=type,
        amount=amount,
        description=description,
        created_at=(now or datetime.now(timezone.utc)).isoformat(),
        source_id=source_id,
    )
    profile.transactions.append(txn)
    profile.total_xp += amount
    return txn


def update_streak(
    profile: GamificationProfile,
    activity: DailyActivity,
    daily_goal_minutes: int,
) -> StreakUpdate:
    """Apply one day's activity to the streak.

    A day counts once. Days missed since the last counted day are covered
    by freeze credits when enough are available; otherwise the streak
    breaks. A broken streak drops to 0 and a qualifying day starts a new
    run at 1.
    """
    today = date.fromisoformat(activity.date)
    activity.goal_met = activity.minutes_learned >= daily_goal_minutes
    last = date.fromisoformat(profile.last_goal_date) if profile.last_goal_date else None
    if last is not None and today <= last:
        return StreakUpdate()
    missed = (today - last).days - 1 if last else 0

    if not activity.goal_met:
        if last is not None and missed > profile.streak_freezes_available and profile.current_streak:
            profile.current_streak = 0
            return StreakUpdate(reset=True)
        return StreakUpdate()

    update = StreakUpdate(extended=True)
    if last is None or missed == 0:
        profile.current_streak += 1
    elif missed <= profile.streak_freezes_available:
        profile.streak_freezes_available -= missed
        profile.current_streak += 1
        update.freezes_used = missed
    else:
        profile.current_streak = 1
        update.reset = True
    profile.last_goal_date = today.isoformat()
    profile.longest_streak = max(profile.longest_streak, profile.current_streak)
    return update


def badge_unlocked(badge: Badge, profile: GamificationProfile) -> bool:
    c = badge.criteria
    if c.type == "courses_completed":
        value = profile.courses_completed
    elif c.type == "streak_days":
        value = max(profile.current_streak, profile.longest_streak)
    elif c.type == "total_minutes":
        value = profile.minutes_learned
    elif c.type == "perfect_score":
        value = profile.perfect_scores
    elif c.type == "assessments_aced":
        value = profile.high_scores
    elif c.type == "category_mastery":
        value = profile.category_completions.get(c.category or "", 0)
    elif c.type == "total_xp":
        value = profile.total_xp
    elif c.type == "level":
        value = calculate_level(profile.total_xp).level
    else:
        return False
    return value >= c.threshold


def evaluate_badges(
    profile: GamificationProfile,
    badges: list[Badge],
    now: Optional[datetime] = None,
) -> list[Badge]:
    """Unlock every badge whose criteria now hold; each awards its XP once.

    Bonus XP can satisfy XP/level badges, so evaluation repeats until no
    further badge unlocks.
    """
    unlocked = []
    while True:
        fresh = [b for b in badges if b.id not in profile.badges and badge_unlocked(b, profile)]
        if not fresh:
            return unlocked
        for badge in fresh:
            profile.badges.add(badge.id)
            award_xp(profile, "badge_earned", badge.xp_reward, f"Badge earned: {badge.name}", now, badge.id)
            logger.info("Staff %s earned badge %s", profile.staff_id, badge.id)
            unlocked.append(badge)


class GamificationLedger:
    """Applies rewards to a profile and re-evaluates badges after each change."""

    def __init__(self, config: EngineConfig, badges: list[Badge]):
        self.config = config
        self.badges = badges

    def award(self, profile, type, description, now=None, source_id=None, amount=None) -> list[Badge]:
        amount = self.config.xp_for(type) if amount is None else amount
        award_xp(profile, type, amount, description, now, source_id)
        return evaluate_badges(profile, self.badges, now)

    def record_activity(self, profile: GamificationProfile, activity: DailyActivity, now=None) -> StreakUpdate:
        update = update_streak(profile, activity, self.config.daily_goal_minutes)
        if update.extended and profile.current_streak > 1:
            award_xp(
                profile, "streak_bonus", self.config.xp_for("streak_bonus"),
                f"{profile.current_streak}-day learning streak", now,
            )
        evaluate_badges(profile, self.badges, now)
        return update

    def course_completed(self, profile: GamificationProfile, course, now=None) -> list[Badge]:
        profile.courses_completed += 1
        if course.category:
            profile.category_completions[course.category] = (
                profile.category_completions.get(course.category, 0) + 1
            )
        return self.award(profile, "course_complete", f"Completed course: {course.title}", now, course.id)

    def assessment_passed(self, profile: GamificationProfile, assessment, score: int, now=None) -> list[Badge]:
        if score >= 90:
            profile.high_scores += 1
        badges = self.award(profile, "quiz_pass", f"Passed {assessment.title or assessment.id}", now, assessment.id)
        if score == 100:
            profile.perfect_scores += 1
            badges += self.award(profile, "perfect_score", f"Perfect score on {assessment.title or assessment.id}", now, assessment.id)
        return badges
