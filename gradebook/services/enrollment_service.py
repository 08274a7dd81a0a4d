"""
In-process course roster used to iterate averages over a course.
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..core.enums import EnrollmentStatus
from ..core.exceptions import NotFoundError, ValidationError
from ..core.interfaces import CourseEnrollmentService


@dataclass
class EnrollmentRecord:
    """A student's enrollment in a course for one period."""
    enrollment_id: str
    course_id: str
    student_id: str
    period_id: Optional[str] = None
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    metadata: Dict[str, Any] = field(default_factory=dict)


class RosterEnrollmentService(CourseEnrollmentService):
    """Thread-safe roster of enrollments keyed by enrollment ID."""

    def __init__(self):
        self._enrollments: Dict[str, EnrollmentRecord] = {}
        self._lock = threading.RLock()

    def enroll(self, enrollment_id: str, course_id: str, student_id: str,
               period_id: Optional[str] = None) -> EnrollmentRecord:
        """Enroll a student; re-enrolling a withdrawn enrollment reactivates it."""
        with self._lock:
            existing = self._enrollments.get(enrollment_id)
            if existing is not None:
                if existing.course_id != course_id or existing.student_id != student_id:
                    raise ValidationError(
                        f"Enrollment {enrollment_id} belongs to another course or student",
                        error_code="ENROLLMENT_CONFLICT"
                    )
                existing.status = EnrollmentStatus.ACTIVE
                return existing

            record = EnrollmentRecord(
                enrollment_id=enrollment_id,
                course_id=course_id,
                student_id=student_id,
                period_id=period_id
            )
            self._enrollments[enrollment_id] = record
            return record

    def withdraw(self, enrollment_id: str) -> EnrollmentRecord:
        """Withdraw an enrollment; its grades stay untouched."""
        with self._lock:
            record = self.get(enrollment_id)
            record.status = EnrollmentStatus.WITHDRAWN
            return record

    def get(self, enrollment_id: str) -> EnrollmentRecord:
        with self._lock:
            record = self._enrollments.get(enrollment_id)
            if record is None:
                raise NotFoundError(
                    f"Enrollment {enrollment_id} not found",
                    details={'enrollment_id': enrollment_id}
                )
            return record

    def active_enrollments(self, course_id: str, period_id: Optional[str] = None) -> List[str]:
        """Active enrollment IDs of a course, in enrollment order."""
        with self._lock:
            return [
                record.enrollment_id for record in self._enrollments.values()
                if record.course_id == course_id
                and record.status == EnrollmentStatus.ACTIVE
                and (period_id is None or record.period_id == period_id)
            ]

    def get_statistics(self) -> Dict[str, Any]:
        """Get enrollment statistics."""
        with self._lock:
            active = sum(1 for r in self._enrollments.values() if r.status == EnrollmentStatus.ACTIVE)
            return {
                'total_enrollments': len(self._enrollments),
                'active_enrollments': active,
                'courses': len({r.course_id for r in self._enrollments.values()})
            }
