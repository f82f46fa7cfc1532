"""Learning-goal progress linked to course completion."""
from lms_engine.models import Course, LearningGoal


def link_goals(goals: list[LearningGoal], course: Course, category: str = "") -> list[LearningGoal]:
    """Active goals whose title mentions one of the course's skills.

    Matching is a case-insensitive substring test of skill name in goal
    title. An empty ``category`` matches goals of any category.
    """
    linked = []
    for goal in goals:
        if goal.status != "active":
            continue
        if category and goal.category != category:
            continue
        title = goal.title.lower()
        if any(skill.lower() in title for skill in course.skills if skill):
            linked.append(goal)
    return linked


def apply_goal_progress(goal: LearningGoal, step: int) -> int:
    goal.progress = min(100, goal.progress + step)
    if goal.progress >= 100:
        goal.status = "completed"
    return goal.progress
