"""Charge generation, carry-forward and administrative correction"""

import logging
import uuid
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from tuition_ledger.config import settings
from tuition_ledger.domain.calendar import previous_period
from tuition_ledger.domain.carry_forward import carry_forward_for_student
from tuition_ledger.domain.exceptions import NotFoundError, PartialBatchFailure, ValidationError
from tuition_ledger.domain.fees import charges_for_student, combine_drafts
from tuition_ledger.domain.models import BatchError, BatchResult, ChargeDraft
from tuition_ledger.infrastructure.database.models import StudentCharge
from tuition_ledger.infrastructure.database.repositories import (
    CalendarRepository,
    ChargeRepository,
    FeeScheduleRepository,
    PaymentRepository,
    StudentRepository,
)
from tuition_ledger.infrastructure.observability.logging import log_student_skipped
from tuition_ledger.services.common import require_period
from tuition_ledger.utils.money import to_money

logger = logging.getLogger(__name__)

GENERATE_CHARGES = "generate_charges"
CARRY_FORWARD = "carry_forward"


def _group(lines) -> Dict[str, list]:
    grouped: Dict[str, list] = {}
    for line in lines:
        grouped.setdefault(line.student_id, []).append(line)
    return grouped


class ChargeService:
    """Writes charge rows; every bulk operation is an idempotent upsert"""

    def __init__(self, db: Session, stream_fee_policy: Optional[str] = None):
        self.db = db
        self.policy = stream_fee_policy or settings.stream_fee_policy
        self.calendar = CalendarRepository(db)
        self.students = StudentRepository(db)
        self.fees = FeeScheduleRepository(db)
        self.charges = ChargeRepository(db)
        self.payments = PaymentRepository(db)

    def generate_charges(self, session_id: str, term_id: str) -> BatchResult:
        """
        Fan the active fee schedule of a period out to every active student.

        One current-term row per (student, purpose), amounts summed across matching
        entries. Re-running overwrites amounts; it never duplicates rows.
        """
        require_period(self.calendar, session_id, term_id)
        result = BatchResult(operation=GENERATE_CHARGES, session_id=session_id, term_id=term_id)

        entries = self.fees.active_entries_for_period(session_id, term_id)
        if not entries:
            logger.info(
                "No active fee entries for period",
                extra={"session_id": session_id, "term_id": term_id},
            )
            return result

        drafts: List[ChargeDraft] = []
        for student in self.students.list_active():
            try:
                drafts.extend(
                    charges_for_student(
                        student,
                        entries,
                        session_id,
                        term_id,
                        description=settings.current_fee_description,
                        policy=self.policy,
                    )
                )
            except PartialBatchFailure as e:
                result.errors.append(BatchError(student_id=e.student_id, reason=e.reason))
                log_student_skipped(GENERATE_CHARGES, e.student_id, e.reason)

        result.written = self.charges.upsert_charges(
            combine_drafts(drafts), chunk_size=settings.upsert_chunk_size
        )
        return result

    def carry_forward_balances(self, session_id: str, term_id: str) -> BatchResult:
        """
        Snapshot each student's unpaid prior-period balance into this period.

        The prior period is the calendar predecessor. Only positive per-purpose
        balances move. Re-running refreshes the snapshot: carried rows for purposes
        that have since been settled are removed. Withdrawn students carry nothing
        and lose any carried rows written by an earlier run.
        """
        target = require_period(self.calendar, session_id, term_id)
        result = BatchResult(operation=CARRY_FORWARD, session_id=session_id, term_id=term_id)

        prior = previous_period(self.calendar.list_periods(), session_id, term_id)
        if prior is None:
            logger.info(
                "No prior period to carry forward from",
                extra={"session_id": session_id, "term_id": term_id},
            )
            return result

        prior_charges = _group(self.charges.charge_lines(prior.session_id, prior.term_id))
        prior_payments = _group(self.payments.payment_lines(prior.session_id, prior.term_id))
        student_ids = sorted(set(prior_charges) | set(prior_payments))
        directory = self.students.get_many(student_ids)
        description = settings.carried_over_description

        drafts: List[ChargeDraft] = []
        for student_id in student_ids:
            try:
                student = directory.get(student_id)
                if student is None:
                    raise PartialBatchFailure(student_id, "student not found in directory")
                if not student.active:
                    student_drafts = []
                else:
                    student_drafts = carry_forward_for_student(
                        student_id,
                        prior,
                        target,
                        prior_charges.get(student_id, []),
                        prior_payments.get(student_id, []),
                        description=description,
                    )
            except PartialBatchFailure as e:
                result.errors.append(BatchError(student_id=e.student_id, reason=e.reason))
                log_student_skipped(CARRY_FORWARD, e.student_id, e.reason)
                continue

            self.charges.delete_carried_except(
                student_id,
                target.session_id,
                target.term_id,
                description,
                keep_purposes=[d.purpose for d in student_drafts],
            )
            drafts.extend(student_drafts)

        result.written = self.charges.upsert_charges(drafts, chunk_size=settings.upsert_chunk_size)
        return result

    def promote(self, session_id: str, term_id: str) -> Tuple[BatchResult, BatchResult]:
        """Generate current-term charges, then carry prior debt into the same period"""
        generated = self.generate_charges(session_id, term_id)
        carried = self.carry_forward_balances(session_id, term_id)
        return generated, carried

    def list_charges(
        self,
        student_id: Optional[str] = None,
        session_id: Optional[str] = None,
        term_id: Optional[str] = None,
        carried_over: Optional[bool] = None,
    ) -> List[StudentCharge]:
        return self.charges.list_charges(
            student_id=student_id, session_id=session_id, term_id=term_id, carried_over=carried_over
        )

    def correct_charge(self, charge_id: uuid.UUID, amount: Decimal, corrected_by: Optional[str]) -> StudentCharge:
        """Administrative amount correction; the only edit a charge row accepts"""
        try:
            amount = to_money(amount)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        if amount < 0:
            raise ValidationError("amount must not be negative")

        charge = self.charges.get_charge(charge_id)
        if charge is None:
            raise NotFoundError(f"Unknown charge: {charge_id}")

        logger.info(
            "Charge corrected",
            extra={
                "charge_id": str(charge_id),
                "student_id": charge.student_id,
                "old_amount": str(charge.amount),
                "new_amount": str(amount),
                "corrected_by": corrected_by,
            },
        )
        return self.charges.correct_amount(charge, amount, corrected_by)
