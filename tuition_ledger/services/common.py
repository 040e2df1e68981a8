"""Lookups shared by the services: resolve identifiers or fail with NotFoundError"""

from tuition_ledger.domain.exceptions import NotFoundError, ValidationError
from tuition_ledger.domain.models import Period, Student
from tuition_ledger.infrastructure.database.repositories import CalendarRepository, StudentRepository


def require_ids(**identifiers: str) -> None:
    """
    Raises:
        ValidationError: any identifier is missing or blank
    """
    missing = [name for name, value in identifiers.items() if not value or not str(value).strip()]
    if missing:
        raise ValidationError(f"{', '.join(missing)} required")


def require_period(calendar: CalendarRepository, session_id: str, term_id: str) -> Period:
    require_ids(session_id=session_id, term_id=term_id)
    period = calendar.get_period(session_id, term_id)
    if period is None:
        raise NotFoundError(f"Unknown period: session={session_id} term={term_id}")
    return period


def require_student(students: StudentRepository, student_id: str) -> Student:
    require_ids(student_id=student_id)
    student = students.get_student(student_id)
    if student is None:
        raise NotFoundError(f"Unknown student: {student_id}")
    return student
