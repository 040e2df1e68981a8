"""Advisory installment plans - progress is derived from payments, never stored"""

from decimal import Decimal
from typing import List

from tuition_ledger.domain.exceptions import ValidationError
from tuition_ledger.domain.models import InstallmentProgress
from tuition_ledger.utils.money import ZERO, to_money


def split_amount(amount: Decimal, num_installments: int) -> List[Decimal]:
    """
    Split an amount into equal installments.

    Requirements:
    - Work in whole minor units (kobo/cents) so the parts add up exactly
    - Last installment absorbs rounding remainder (≤ num_installments-1 minor units drift)

    Example:
        4000.03 over 4 → [1000.00, 1000.00, 1000.00, 1000.03]
    """
    if num_installments <= 0:
        raise ValidationError("num_installments must be positive")

    amount_minor = int(to_money(amount) * 100)
    if amount_minor <= 0:
        return []

    base_amount = amount_minor // num_installments
    remainder = amount_minor % num_installments

    parts = []
    for i in range(num_installments):
        # Last installment absorbs remainder to ensure exact total
        part = base_amount + (remainder if i == num_installments - 1 else 0)
        parts.append(Decimal(part) / 100)

    return [to_money(p) for p in parts]


def default_expected_per_installment(billed: Decimal, total_installments: int) -> Decimal:
    """First part of an equal split; the UI shows this as the per-installment target"""
    parts = split_amount(billed, total_installments)
    return parts[0] if parts else ZERO


def installment_progress(
    student_id: str,
    session_id: str,
    term_id: str,
    total_installments: int,
    expected_per_installment: Decimal,
    billed: Decimal,
    paid: Decimal,
) -> InstallmentProgress:
    """
    Where a student stands against their plan.

    installments_covered = floor(paid / expected_per_installment), capped at the plan size.
    """
    if expected_per_installment > 0 and paid > 0:
        covered = min(int(paid // expected_per_installment), total_installments)
    else:
        covered = 0

    return InstallmentProgress(
        student_id=student_id,
        session_id=session_id,
        term_id=term_id,
        total_installments=total_installments,
        expected_per_installment=expected_per_installment,
        billed=billed,
        paid=paid,
        installments_covered=covered,
        remaining_installments=total_installments - covered,
        remaining_amount=max(ZERO, billed - paid),
        suggested_schedule=split_amount(billed, total_installments) if billed > 0 else [],
    )
