"""Academic calendar lookups"""

from typing import List, Optional

from sqlalchemy.orm import Session

from tuition_ledger.domain.calendar import normalize_term_name, previous_period
from tuition_ledger.domain.exceptions import NotFoundError
from tuition_ledger.domain.models import Period
from tuition_ledger.infrastructure.database.repositories import CalendarRepository
from tuition_ledger.services.common import require_ids, require_period


class CalendarService:
    def __init__(self, db: Session):
        self.db = db
        self.calendar = CalendarRepository(db)

    def list_periods(self) -> List[Period]:
        """Every period on the calendar, oldest first"""
        return self.calendar.list_periods()

    def resolve(self, session_name: str, term_name: str) -> Period:
        """
        Find a period by its display names ("2024/2025", "first term").

        Raises:
            NotFoundError: no period carries these names
        """
        require_ids(session_name=session_name, term_name=term_name)
        period = self.calendar.find_by_names(session_name.strip(), term_name)
        if period is None:
            raise NotFoundError(
                f"Unknown period: session={session_name} term={normalize_term_name(term_name)}"
            )
        return period

    def get_previous(self, session_id: str, term_id: str) -> Optional[Period]:
        require_period(self.calendar, session_id, term_id)
        return previous_period(self.calendar.list_periods(), session_id, term_id)
