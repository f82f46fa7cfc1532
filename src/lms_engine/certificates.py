"""Certificate issuance on course completion."""
import uuid
from datetime import datetime, timedelta
from typing import Optional

from lms_engine.models import Certificate, Course, Enrollment


def certificate_number(issued: datetime) -> str:
    return f"CERT-{issued:%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


def issue_certificate(enrollment: Enrollment, course: Course, now: datetime) -> Optional[Certificate]:
    """Build the certificate for a completed enrollment, or None if the course grants none."""
    if not course.certificate_on_completion:
        return None
    expires = None
    if course.validity_period_days:
        expires = (now + timedelta(days=course.validity_period_days)).isoformat()
    return Certificate(
        id=str(uuid.uuid4()),
        certificate_number=certificate_number(now),
        staff_id=enrollment.staff_id,
        course_id=course.id,
        enrollment_id=enrollment.id,
        issued_at=now.isoformat(),
        expires_at=expires,
    )
