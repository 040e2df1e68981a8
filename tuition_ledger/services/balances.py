"""Balance calculator and reporting views over stored charges and payments"""

import logging
from typing import List

from sqlalchemy.orm import Session

from tuition_ledger.domain import balances
from tuition_ledger.domain.models import ClassSummary, FeeBreakdown, PeriodSummary, StudentBalance
from tuition_ledger.infrastructure.database.repositories import (
    CalendarRepository,
    ChargeRepository,
    PaymentRepository,
    StudentRepository,
)
from tuition_ledger.services.common import require_ids, require_period, require_student

logger = logging.getLogger(__name__)


class BalanceService:
    """Read-only: every figure is recomputed from charge and payment rows"""

    def __init__(self, db: Session):
        self.db = db
        self.calendar = CalendarRepository(db)
        self.students = StudentRepository(db)
        self.charges = ChargeRepository(db)
        self.payments = PaymentRepository(db)

    def _balance(self, student_id: str, session_id: str, term_id: str) -> StudentBalance:
        charges = self.charges.charge_lines(session_id, term_id, student_id=student_id)
        payments = self.payments.payment_lines(session_id, term_id, student_id=student_id)
        balance = balances.student_balance(student_id, session_id, term_id, charges, payments)

        lines = balances.build_ledger_lines(student_id, session_id, term_id, charges, payments)
        orphans = balances.orphan_payment_purposes(lines)
        if orphans:
            logger.warning(
                "Payments against purposes with no charge",
                extra={
                    "student_id": student_id,
                    "session_id": session_id,
                    "term_id": term_id,
                    "purposes": orphans,
                },
            )
        return balance

    def get_student_balance(self, student_id: str, session_id: str, term_id: str) -> StudentBalance:
        """
        Billed, paid, outstanding and status for one student in one period,
        aggregated and per purpose.

        Raises:
            NotFoundError: unknown student or period
        """
        require_student(self.students, student_id)
        require_period(self.calendar, session_id, term_id)
        return self._balance(student_id, session_id, term_id)

    def get_student_history(self, student_id: str) -> List[StudentBalance]:
        """Balances for every period the student has charges or payments in, oldest first"""
        require_student(self.students, student_id)
        keys = self.charges.periods_for_student(student_id) | self.payments.periods_for_student(student_id)

        sequence = {p.key: p.sequence for p in self.calendar.list_periods()}
        # Periods missing from the calendar sort last, by id
        ordered = sorted(keys, key=lambda k: (k not in sequence, sequence.get(k, 0), k))
        return [self._balance(student_id, session_id, term_id) for session_id, term_id in ordered]

    def get_class_summary(self, class_level: str, session_id: str, term_id: str) -> ClassSummary:
        require_ids(class_level=class_level)
        require_period(self.calendar, session_id, term_id)
        return balances.class_summary(
            class_level,
            session_id,
            term_id,
            self.students.list_active_in_class(class_level),
            self.charges.charge_lines(session_id, term_id),
            self.payments.payment_lines(session_id, term_id),
        )

    def get_period_summary(self, session_id: str, term_id: str) -> PeriodSummary:
        require_period(self.calendar, session_id, term_id)
        return balances.period_summary(
            session_id,
            term_id,
            self.students.list_active(),
            self.charges.charge_lines(session_id, term_id),
            self.payments.payment_lines(session_id, term_id),
        )

    def get_fee_breakdown(self, session_id: str, term_id: str) -> FeeBreakdown:
        require_period(self.calendar, session_id, term_id)
        charges = self.charges.charge_lines(session_id, term_id)
        directory = self.students.get_many(c.student_id for c in charges)
        return balances.fee_breakdown(directory, charges, self.payments.payment_lines(session_id, term_id))
