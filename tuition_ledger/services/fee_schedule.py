"""Fee schedule administration - entries are deactivated, never deleted"""

import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from tuition_ledger.domain.exceptions import NotFoundError, ValidationError
from tuition_ledger.domain.fees import normalize_stream
from tuition_ledger.domain.models import FeeScheduleEntry
from tuition_ledger.infrastructure.database.models import FeeStructure
from tuition_ledger.infrastructure.database.repositories import (
    ANY_STREAM,
    CalendarRepository,
    FeeScheduleRepository,
)
from tuition_ledger.services.common import require_ids, require_period
from tuition_ledger.utils.money import to_money

logger = logging.getLogger(__name__)


class FeeScheduleService:
    def __init__(self, db: Session):
        self.db = db
        self.calendar = CalendarRepository(db)
        self.fees = FeeScheduleRepository(db)

    def list_entries(
        self,
        session_id: Optional[str] = None,
        term_id: Optional[str] = None,
        class_level: Optional[str] = None,
        stream=ANY_STREAM,
        active_only: bool = False,
    ) -> List[FeeStructure]:
        return self.fees.list_entries(
            session_id=session_id,
            term_id=term_id,
            class_level=class_level,
            stream=stream,
            active_only=active_only,
        )

    def upsert_entry(
        self,
        class_level: str,
        session_id: str,
        term_id: str,
        purpose: str,
        amount: Decimal,
        stream: Optional[str] = None,
        active: bool = True,
        updated_by: Optional[str] = None,
    ) -> FeeStructure:
        """
        Create or update the entry for (class, stream, session, term, purpose).

        Raises:
            ValidationError: blank identifiers or a negative amount
            NotFoundError: the period is not on the calendar
        """
        require_ids(class_level=class_level, purpose=purpose)
        require_period(self.calendar, session_id, term_id)
        try:
            amount = to_money(amount)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        if amount < 0:
            raise ValidationError("amount must not be negative")

        entry = FeeScheduleEntry(
            class_level=class_level.strip(),
            stream=normalize_stream(stream),
            session_id=session_id,
            term_id=term_id,
            purpose=purpose.strip(),
            amount=amount,
            active=active,
        )
        fee = self.fees.upsert_entry(entry, updated_by=updated_by)
        logger.info(
            "Fee entry saved",
            extra={
                "class_level": entry.class_level,
                "stream": entry.stream,
                "session_id": session_id,
                "term_id": term_id,
                "purpose": entry.purpose,
                "amount": str(amount),
                "active": active,
            },
        )
        return fee

    def deactivate_entry(
        self,
        class_level: str,
        session_id: str,
        term_id: str,
        purpose: str,
        stream: Optional[str] = None,
        updated_by: Optional[str] = None,
    ) -> FeeStructure:
        require_ids(class_level=class_level, session_id=session_id, term_id=term_id, purpose=purpose)
        fee = self.fees.get_entry(class_level.strip(), stream, session_id, term_id, purpose.strip())
        if fee is None:
            raise NotFoundError("No matching fee entry")
        return self.fees.deactivate(fee, updated_by=updated_by)
