"""Module access gating based on prerequisite completion."""
from typing import Optional

from lms_engine.models import COMPLETED, Course, Enrollment, Module


def is_locked(module: Module, enrollment: Enrollment) -> bool:
    """True when the module's prerequisite has not been completed.

    A prerequisite with no progress entry counts as not completed.
    """
    if not module.unlock_after_module_id:
        return False
    prereq = enrollment.get_module_progress(module.unlock_after_module_id)
    return prereq is None or prereq.status != COMPLETED


def accessible_modules(course: Course, enrollment: Enrollment) -> list[Module]:
    return [m for m in course.modules if not is_locked(m, enrollment)]


def next_module(course: Course, enrollment: Enrollment) -> Optional[Module]:
    """First unlocked module in course order that is not yet completed."""
    for module in accessible_modules(course, enrollment):
        mp = enrollment.get_module_progress(module.id)
        if mp is None or mp.status != COMPLETED:
            return module
    return None
