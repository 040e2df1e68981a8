"""Balance calculator - pure read-side folds over charge and payment lines"""

from collections import OrderedDict
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional

from tuition_ledger.domain.fees import normalize
from tuition_ledger.domain.models import (
    Allocation,
    ChargeLine,
    ClassSummary,
    FeeBreakdown,
    FeeBreakdownRow,
    LedgerLine,
    OwingStudent,
    PaymentLine,
    PeriodSummary,
    PurposeBalance,
    Student,
    StudentBalance,
)
from tuition_ledger.utils.money import ZERO, sum_money

PAID = "Paid"
OUTSTANDING = "Outstanding"
OVERPAID = "Overpaid"
PENDING = "Pending"


def derive_status(billed: Decimal, paid: Decimal, per_purpose: bool = False) -> str:
    """
    Map billed/paid to a status label.

    - Pending: nothing billed yet (aggregate scope, regardless of paid)
    - Paid: paid covers billed
    - Outstanding: billed and not fully covered
    - Overpaid: purpose scope only, paid exceeds billed, including payments
      against a purpose that was never billed

    An overpaid student (billed 1000, paid 1500) is "Paid" in aggregate; the
    surplus shows as "Overpaid" on the purpose lines that carry it.
    """
    if per_purpose and paid > billed:
        return OVERPAID
    if billed <= 0:
        return PENDING
    if paid >= billed:
        return PAID
    return OUTSTANDING


def outstanding(billed: Decimal, paid: Decimal) -> Decimal:
    """Billed minus paid, floored at zero for display"""
    return max(ZERO, billed - paid)


def allocate_payments(current_fee: Decimal, previous_debt: Decimal, total_paid: Decimal) -> Allocation:
    """
    Apply a payment pool to current-term charges first, remainder to carried-over debt.

    Example:
        current 5000, carried 3000, paid 6000
        -> current_outstanding 0, previous_outstanding 2000
    """
    paid_to_current = min(total_paid, current_fee)
    paid_to_previous = max(ZERO, total_paid - paid_to_current)
    return Allocation(
        current_fee=current_fee,
        previous_debt=previous_debt,
        paid_to_current=paid_to_current,
        paid_to_previous=paid_to_previous,
        current_outstanding=max(ZERO, current_fee - paid_to_current),
        previous_outstanding=max(ZERO, previous_debt - paid_to_previous),
    )


def build_ledger_lines(
    student_id: str,
    session_id: str,
    term_id: str,
    charges: Iterable[ChargeLine],
    payments: Iterable[PaymentLine],
) -> List[LedgerLine]:
    """
    One line per purpose with charged/paid totals.

    Purposes are matched case-insensitively; charge spelling wins for the label.
    Current and carried-over charges of a purpose land on the same line.
    """
    lines: "OrderedDict[str, LedgerLine]" = OrderedDict()

    def line_for(purpose: str) -> LedgerLine:
        key = normalize(purpose)
        if key not in lines:
            lines[key] = LedgerLine(
                student_id=student_id,
                session_id=session_id,
                term_id=term_id,
                purpose=purpose.strip(),
                total_charged=ZERO,
                total_paid=ZERO,
            )
        return lines[key]

    for charge in charges:
        line = line_for(charge.purpose)
        line.total_charged += charge.amount
    for payment in payments:
        line = line_for(payment.purpose)
        line.total_paid += payment.amount

    return list(lines.values())


def orphan_payment_purposes(lines: Iterable[LedgerLine]) -> List[str]:
    """
    Purposes paid but never billed while other purposes were billed.

    A lone advance payment is normal; a stray purpose next to real charges
    usually means a mistyped purpose tag.
    """
    lines = list(lines)
    if not any(line.total_charged > 0 for line in lines):
        return []
    return [line.purpose for line in lines if line.total_charged == 0 and line.total_paid > 0]


def student_balance(
    student_id: str,
    session_id: str,
    term_id: str,
    charges: Iterable[ChargeLine],
    payments: Iterable[PaymentLine],
) -> StudentBalance:
    """Per-purpose and aggregate position of one student in one period"""
    charges = list(charges)
    payments = list(payments)

    billed = sum_money(c.amount for c in charges)
    paid = sum_money(p.amount for p in payments)
    current_fee = sum_money(c.amount for c in charges if not c.carried_over)
    previous_debt = sum_money(c.amount for c in charges if c.carried_over)

    purposes = [
        PurposeBalance(
            purpose=line.purpose,
            billed=line.total_charged,
            paid=line.total_paid,
            balance=line.balance,
            outstanding=outstanding(line.total_charged, line.total_paid),
            status=derive_status(line.total_charged, line.total_paid, per_purpose=True),
        )
        for line in build_ledger_lines(student_id, session_id, term_id, charges, payments)
    ]

    return StudentBalance(
        student_id=student_id,
        session_id=session_id,
        term_id=term_id,
        billed=billed,
        paid=paid,
        outstanding=outstanding(billed, paid),
        status=derive_status(billed, paid),
        allocation=allocate_payments(current_fee, previous_debt, paid),
        purposes=purposes,
    )


def collection_rate(expected: Decimal, collected: Decimal) -> float:
    """Share of expected money collected, 0.0 when nothing is expected"""
    if expected <= 0:
        return 0.0
    return round(float(collected / expected), 4)


def _group_by_student(lines: Iterable) -> Dict[str, list]:
    grouped: Dict[str, list] = {}
    for line in lines:
        grouped.setdefault(line.student_id, []).append(line)
    return grouped


def class_summary(
    class_level: str,
    session_id: str,
    term_id: str,
    students: Iterable[Student],
    charges: Iterable[ChargeLine],
    payments: Iterable[PaymentLine],
) -> ClassSummary:
    """
    Expected/collected/outstanding for every active student of a class.

    Each student is computed independently and then summed; stream top-ups make
    per-student charges heterogeneous, so nothing is multiplied out.
    """
    members = [
        s for s in students
        if s.active and normalize(s.class_level) == normalize(class_level)
    ]
    charges_by_student = _group_by_student(charges)
    payments_by_student = _group_by_student(payments)

    expected = ZERO
    collected = ZERO
    total_outstanding = ZERO
    owing: List[OwingStudent] = []

    for student in members:
        billed = sum_money(c.amount for c in charges_by_student.get(student.student_id, []))
        paid = sum_money(p.amount for p in payments_by_student.get(student.student_id, []))
        owed = outstanding(billed, paid)

        expected += billed
        collected += paid
        total_outstanding += owed
        if owed > 0:
            owing.append(
                OwingStudent(
                    student_id=student.student_id,
                    full_name=student.full_name,
                    class_level=student.class_level,
                    stream=student.stream,
                    outstanding=owed,
                )
            )

    owing.sort(key=lambda o: (-o.outstanding, o.student_id))

    return ClassSummary(
        class_level=class_level,
        session_id=session_id,
        term_id=term_id,
        student_count=len(members),
        expected=expected,
        collected=collected,
        outstanding=total_outstanding,
        collection_rate=collection_rate(expected, collected),
        owing_students=owing,
    )


def period_summary(
    session_id: str,
    term_id: str,
    students: Iterable[Student],
    charges: Iterable[ChargeLine],
    payments: Iterable[PaymentLine],
) -> PeriodSummary:
    """Class summaries for every class level present among active students"""
    students = [s for s in students if s.active]
    charges = list(charges)
    payments = list(payments)

    class_levels: "OrderedDict[str, str]" = OrderedDict()
    for student in sorted(students, key=lambda s: normalize(s.class_level)):
        class_levels.setdefault(normalize(student.class_level), student.class_level)

    classes = [
        class_summary(level, session_id, term_id, students, charges, payments)
        for level in class_levels.values()
    ]
    expected = sum_money(c.expected for c in classes)
    collected = sum_money(c.collected for c in classes)

    return PeriodSummary(
        session_id=session_id,
        term_id=term_id,
        classes=classes,
        expected=expected,
        collected=collected,
        outstanding=sum_money(c.outstanding for c in classes),
        collection_rate=collection_rate(expected, collected),
    )


def fee_breakdown(
    students: Mapping[str, Student],
    charges: Iterable[ChargeLine],
    payments: Iterable[PaymentLine],
) -> FeeBreakdown:
    """
    Current vs carried-over debt per billed student, payments applied current-first.

    Rows are sorted by total billed, largest first.
    """
    charges_by_student = _group_by_student(charges)
    payments_by_student = _group_by_student(payments)

    rows: List[FeeBreakdownRow] = []
    for student_id, student_charges in charges_by_student.items():
        student: Optional[Student] = students.get(student_id)
        current_fee = sum_money(c.amount for c in student_charges if not c.carried_over)
        previous_debt = sum_money(c.amount for c in student_charges if c.carried_over)
        paid = sum_money(p.amount for p in payments_by_student.get(student_id, []))
        allocation = allocate_payments(current_fee, previous_debt, paid)

        rows.append(
            FeeBreakdownRow(
                student_id=student_id,
                full_name=student.full_name if student else "Unknown",
                class_level=student.class_level if student else "Unknown",
                stream=student.stream if student else None,
                current_fee=current_fee,
                previous_debt=previous_debt,
                total=current_fee + previous_debt,
                current_outstanding=allocation.current_outstanding,
                previous_outstanding=allocation.previous_outstanding,
            )
        )

    rows.sort(key=lambda r: (-r.total, r.student_id))

    return FeeBreakdown(
        rows=rows,
        current_fee=sum_money(r.current_fee for r in rows),
        previous_debt=sum_money(r.previous_debt for r in rows),
        total=sum_money(r.total for r in rows),
        current_outstanding=sum_money(r.current_outstanding for r in rows),
        previous_outstanding=sum_money(r.previous_outstanding for r in rows),
    )
