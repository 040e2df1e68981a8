"""Carry-forward of unpaid prior-period balances into a new period"""

from typing import Iterable, List

from tuition_ledger.domain.balances import build_ledger_lines
from tuition_ledger.domain.models import ChargeDraft, ChargeLine, PaymentLine, Period


def carry_forward_for_student(
    student_id: str,
    prior: Period,
    target: Period,
    prior_charges: Iterable[ChargeLine],
    prior_payments: Iterable[PaymentLine],
    description: str,
) -> List[ChargeDraft]:
    """
    Carried-over charge drafts for one student.

    The prior period's position is taken per purpose (its own carried rows
    included, so debt keeps rolling). Only strictly positive balances move;
    settled and overpaid purposes produce nothing.
    """
    lines = build_ledger_lines(student_id, prior.session_id, prior.term_id, prior_charges, prior_payments)

    return [
        ChargeDraft(
            student_id=student_id,
            session_id=target.session_id,
            term_id=target.term_id,
            purpose=line.purpose,
            amount=line.balance,
            carried_over=True,
            description=description,
        )
        for line in lines
        if line.balance > 0
    ]
