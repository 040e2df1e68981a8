"""Installment plans - advisory metadata for progress indicators"""

from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from tuition_ledger.domain.exceptions import NotFoundError, ValidationError
from tuition_ledger.domain.installments import default_expected_per_installment, installment_progress
from tuition_ledger.domain.models import InstallmentProgress
from tuition_ledger.infrastructure.database.repositories import InstallmentPlanRepository
from tuition_ledger.services.balances import BalanceService
from tuition_ledger.utils.money import to_money


class InstallmentPlanService:
    def __init__(self, db: Session):
        self.db = db
        self.plans = InstallmentPlanRepository(db)
        self.balances = BalanceService(db)

    def upsert_plan(
        self,
        student_id: str,
        session_id: str,
        term_id: str,
        total_installments: int,
        expected_per_installment: Optional[Decimal] = None,
    ) -> InstallmentProgress:
        """
        Create or replace the plan for a student and period.

        When expected_per_installment is omitted it is derived from the
        student's billed total split evenly over the installments.
        """
        if total_installments is None or total_installments <= 0:
            raise ValidationError("total_installments must be positive")

        balance = self.balances.get_student_balance(student_id, session_id, term_id)

        if expected_per_installment is None:
            expected = default_expected_per_installment(balance.billed, total_installments)
        else:
            try:
                expected = to_money(expected_per_installment)
            except ValueError as e:
                raise ValidationError(str(e)) from e
            if expected < 0:
                raise ValidationError("expected_per_installment must not be negative")

        plan = self.plans.upsert_plan(student_id, session_id, term_id, total_installments, expected)
        return installment_progress(
            student_id,
            session_id,
            term_id,
            plan.total_installments,
            to_money(plan.expected_per_installment),
            balance.billed,
            balance.paid,
        )

    def get_progress(self, student_id: str, session_id: str, term_id: str) -> InstallmentProgress:
        """Plan plus what has been paid; nothing here is stored except the plan itself"""
        balance = self.balances.get_student_balance(student_id, session_id, term_id)
        plan = self.plans.get_plan(student_id, session_id, term_id)
        if plan is None:
            raise NotFoundError(f"No installment plan for {student_id} in {session_id}/{term_id}")
        return installment_progress(
            student_id,
            session_id,
            term_id,
            plan.total_installments,
            to_money(plan.expected_per_installment),
            balance.billed,
            balance.paid,
        )
