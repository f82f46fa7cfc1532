"""Content completion recording and progress percentages."""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from lms_engine.errors import ModuleLocked, UnknownContent, UnknownModule
from lms_engine.gate import is_locked
from lms_engine.models import (
    COMPLETED, IN_PROGRESS, NOT_STARTED, Course, Enrollment, Module, ModuleProgress, percent,
)

logger = logging.getLogger(__name__)


@dataclass
class ProgressUpdate:
    module_id: str
    module_progress: int
    course_progress: int
    changed: bool


def module_percent(module: Module, mp: Optional[ModuleProgress]) -> int:
    if mp is None:
        return 0
    if not module.content:
        return 100 if mp.status == COMPLETED else 0
    return percent(len(mp.completed_content_ids), len(module.content))


def course_percent(course: Course, enrollment: Enrollment) -> int:
    """Completed share of every content item in the course, halves rounded up."""
    total = course.total_content
    if total == 0:
        return 0
    completed = 0
    for module in course.modules:
        mp = enrollment.get_module_progress(module.id)
        if mp:
            completed += len(mp.completed_content_ids)
    return percent(completed, total)


def recompute(course: Course, enrollment: Enrollment) -> None:
    for module in course.modules:
        mp = enrollment.get_module_progress(module.id)
        if mp:
            mp.progress = module_percent(module, mp)
    if enrollment.status == COMPLETED:
        enrollment.progress = 100
    else:
        enrollment.progress = course_percent(course, enrollment)


def record_content_completion(
    course: Course,
    enrollment: Enrollment,
    module_id: str,
    content_id: str,
    completed: bool = True,
    now: Optional[datetime] = None,
) -> ProgressUpdate:
    """Mark a content item (in)complete and recompute percentages.

    Validation happens before any mutation, so a raised error leaves the
    enrollment untouched. Module and course completion are not decided here.
    """
    module = course.get_module(module_id)
    if module is None:
        raise UnknownModule(module_id)
    if content_id not in module.content_ids:
        raise UnknownContent(module_id, content_id)
    if is_locked(module, enrollment):
        raise ModuleLocked(module_id, module.unlock_after_module_id)

    stamp = (now or datetime.now(timezone.utc)).isoformat()
    mp = enrollment.get_module_progress(module_id)
    changed = False
    if completed:
        if mp is None:
            mp = ModuleProgress(module_id=module_id, status=IN_PROGRESS, started_at=stamp)
            enrollment.module_progress.append(mp)
        elif mp.status == NOT_STARTED:
            mp.status = IN_PROGRESS
            mp.started_at = mp.started_at or stamp
        if content_id not in mp.completed_content_ids:
            mp.completed_content_ids.append(content_id)
            changed = True
    elif mp is not None and content_id in mp.completed_content_ids:
        mp.completed_content_ids.remove(content_id)
        changed = True

    if enrollment.status == NOT_STARTED:
        enrollment.status = IN_PROGRESS
        enrollment.started_at = stamp

    recompute(course, enrollment)
    if changed:
        logger.debug(
            "Enrollment %s: content %s/%s -> %s (course %d%%)",
            enrollment.id, module_id, content_id, completed, enrollment.progress,
        )
    return ProgressUpdate(
        module_id=module_id,
        module_progress=module_percent(module, mp),
        course_progress=enrollment.progress,
        changed=changed,
    )
