"""Fee matching and charge fan-out - core of the charge generator"""

from collections import OrderedDict
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from tuition_ledger.domain.exceptions import PartialBatchFailure, ValidationError
from tuition_ledger.domain.models import ChargeDraft, FeeScheduleEntry, Student
from tuition_ledger.utils.money import ZERO, to_money

ADDITIVE = "additive"
OVERRIDE = "override"
STREAM_FEE_POLICIES = (ADDITIVE, OVERRIDE)


def normalize(value: Optional[str]) -> str:
    """Case/whitespace-insensitive comparison key; None and "" are the same"""
    return (value or "").strip().lower()


def normalize_stream(stream: Optional[str]) -> Optional[str]:
    """Blank stream means 'all streams' and is stored as None in the domain"""
    if stream is None or stream.strip() == "":
        return None
    return stream.strip()


def entry_matches_student(entry: FeeScheduleEntry, student: Student) -> bool:
    """
    A fee entry applies to a student when:
    - class levels are equal (case-normalised)
    - the entry has no stream, or its stream equals the student's stream (case-insensitive)
    """
    if normalize(entry.class_level) != normalize(student.class_level):
        return False
    if normalize(entry.stream) == "":
        return True
    return normalize(entry.stream) == normalize(student.stream)


def matching_entries(
    student: Student,
    entries: Iterable[FeeScheduleEntry],
    policy: str = ADDITIVE,
) -> List[FeeScheduleEntry]:
    """
    Active fee entries that bill this student.

    Under the "override" policy a stream-specific entry for a purpose shadows
    the class-wide entries for that same purpose. Under "additive" both apply.
    """
    if policy not in STREAM_FEE_POLICIES:
        raise ValidationError(f"Unknown stream fee policy: {policy}")

    matched = [e for e in entries if e.active and entry_matches_student(e, student)]
    if policy == ADDITIVE:
        return matched

    stream_purposes = {normalize(e.purpose) for e in matched if normalize(e.stream)}
    return [
        e for e in matched
        if normalize(e.stream) or normalize(e.purpose) not in stream_purposes
    ]


def expected_by_purpose(
    student: Student,
    entries: Iterable[FeeScheduleEntry],
    policy: str = ADDITIVE,
) -> Dict[str, Decimal]:
    """Sum matched amounts per purpose, keeping the first-seen spelling of the purpose"""
    totals: "OrderedDict[str, Decimal]" = OrderedDict()
    labels: Dict[str, str] = {}
    for entry in matching_entries(student, entries, policy):
        key = normalize(entry.purpose)
        label = labels.setdefault(key, entry.purpose.strip())
        totals[label] = totals.get(label, ZERO) + to_money(entry.amount)
    return dict(totals)


def compute_expected_for_student(
    student: Student,
    entries: Iterable[FeeScheduleEntry],
    policy: str = ADDITIVE,
) -> Decimal:
    """Total a student is expected to pay for a period according to the fee schedule"""
    return sum(expected_by_purpose(student, entries, policy).values(), ZERO)


def charges_for_student(
    student: Student,
    entries: Iterable[FeeScheduleEntry],
    session_id: str,
    term_id: str,
    description: str,
    policy: str = ADDITIVE,
) -> List[ChargeDraft]:
    """
    Current-term charge drafts for one student: one row per purpose.

    Raises:
        PartialBatchFailure: the roster entry cannot be billed (no class level)
    """
    if not student.student_id or not normalize(student.class_level):
        raise PartialBatchFailure(student.student_id or "<unknown>", "student has no class level")

    return [
        ChargeDraft(
            student_id=student.student_id,
            session_id=session_id,
            term_id=term_id,
            purpose=purpose,
            amount=amount,
            carried_over=False,
            description=description,
        )
        for purpose, amount in expected_by_purpose(student, entries, policy).items()
    ]


def combine_drafts(drafts: Iterable[ChargeDraft]) -> List[ChargeDraft]:
    """
    Collapse drafts sharing a conflict key by summing their amounts.

    A single upsert statement must never touch the same key twice.
    """
    combined: "OrderedDict[Tuple, ChargeDraft]" = OrderedDict()
    for draft in drafts:
        existing = combined.get(draft.conflict_key)
        if existing is None:
            combined[draft.conflict_key] = draft
        else:
            combined[draft.conflict_key] = ChargeDraft(
                student_id=existing.student_id,
                session_id=existing.session_id,
                term_id=existing.term_id,
                purpose=existing.purpose,
                amount=existing.amount + draft.amount,
                carried_over=existing.carried_over,
                description=existing.description,
            )
    return list(combined.values())
