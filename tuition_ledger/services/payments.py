"""Payment recording - rows are appended, never re-valued"""

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from tuition_ledger.domain.exceptions import DuplicateReversalError, NotFoundError, ValidationError
from tuition_ledger.domain.models import PAYMENT_METHODS
from tuition_ledger.infrastructure.database.models import PaymentRecord
from tuition_ledger.infrastructure.database.repositories import (
    CalendarRepository,
    PaymentRepository,
    StudentRepository,
)
from tuition_ledger.services.common import require_ids, require_period, require_student
from tuition_ledger.utils.money import to_money

logger = logging.getLogger(__name__)


class PaymentService:
    def __init__(self, db: Session):
        self.db = db
        self.calendar = CalendarRepository(db)
        self.students = StudentRepository(db)
        self.payments = PaymentRepository(db)

    def record_payment(
        self,
        student_id: str,
        session_id: str,
        term_id: str,
        purpose: str,
        amount: Decimal,
        method: str,
        recorded_by: Optional[str],
        paid_on: Optional[date] = None,
        reference: Optional[str] = None,
    ) -> PaymentRecord:
        """
        Append a payment against a student and period.

        No matching charge is required: advance payments and payments against
        unbilled purposes are accepted and show up as "Overpaid".

        Raises:
            ValidationError: non-positive amount, blank purpose, unknown method
            NotFoundError: unknown student or period
        """
        require_ids(purpose=purpose)
        try:
            amount = to_money(amount)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        if amount <= 0:
            raise ValidationError("amount must be positive")
        if method not in PAYMENT_METHODS:
            raise ValidationError(f"method must be one of {', '.join(PAYMENT_METHODS)}")

        require_student(self.students, student_id)
        require_period(self.calendar, session_id, term_id)

        payment = self.payments.create_payment(
            student_id=student_id,
            session_id=session_id,
            term_id=term_id,
            purpose=purpose.strip(),
            amount=amount,
            method=method,
            recorded_by=recorded_by,
            paid_on=paid_on,
            reference=reference,
        )
        logger.info(
            "Payment recorded",
            extra={
                "payment_id": str(payment.id),
                "student_id": student_id,
                "session_id": session_id,
                "term_id": term_id,
                "purpose": payment.purpose,
                "amount": str(amount),
                "method": method,
            },
        )
        return payment

    def list_payments(
        self,
        student_id: Optional[str] = None,
        session_id: Optional[str] = None,
        term_id: Optional[str] = None,
        purpose: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[PaymentRecord]:
        return self.payments.list_payments(
            student_id=student_id, session_id=session_id, term_id=term_id, purpose=purpose, limit=limit
        )

    def _require_payment(self, payment_id: uuid.UUID) -> PaymentRecord:
        payment = self.payments.get_payment(payment_id)
        if payment is None:
            raise NotFoundError(f"Unknown payment: {payment_id}")
        return payment

    def update_metadata(
        self,
        payment_id: uuid.UUID,
        reference: Optional[str] = None,
        paid_on: Optional[date] = None,
    ) -> PaymentRecord:
        """Only reference and paid_on are editable; amounts are corrected by reversal"""
        payment = self._require_payment(payment_id)
        return self.payments.update_metadata(payment, reference=reference, paid_on=paid_on)

    def reverse_payment(
        self,
        payment_id: uuid.UUID,
        recorded_by: Optional[str],
        reference: Optional[str] = None,
    ) -> PaymentRecord:
        """
        Append a negated copy of a payment.

        Raises:
            NotFoundError: unknown payment
            DuplicateReversalError: already reversed, or the payment is itself a reversal
        """
        original = self._require_payment(payment_id)
        if original.reversal_of_id is not None:
            raise DuplicateReversalError("A reversal cannot be reversed")
        if self.payments.get_reversal(original.id) is not None:
            raise DuplicateReversalError(f"Payment {payment_id} is already reversed")

        reversal = self.payments.create_payment(
            student_id=original.student_id,
            session_id=original.session_id,
            term_id=original.term_id,
            purpose=original.purpose,
            amount=-to_money(original.amount),
            method=original.method,
            recorded_by=recorded_by,
            paid_on=date.today(),
            reference=reference or f"Reversal of {original.id}",
            reversal_of_id=original.id,
        )
        logger.info(
            "Payment reversed",
            extra={
                "payment_id": str(original.id),
                "reversal_id": str(reversal.id),
                "student_id": original.student_id,
                "amount": str(original.amount),
            },
        )
        return reversal
