"""Unit tests for carry-forward drafts and calendar ordering"""

import pytest
from decimal import Decimal
from tuition_ledger.domain.calendar import find_period, normalize_term_name, previous_period
from tuition_ledger.domain.carry_forward import carry_forward_for_student
from tuition_ledger.domain.exceptions import NotFoundError
from tuition_ledger.domain.models import ChargeLine, PaymentLine, Period

D = Decimal

FIRST = Period("2024-2025", "T1", 1, "2024/2025", "1st Term")
SECOND = Period("2024-2025", "T2", 2, "2024/2025", "2nd Term")
THIRD = Period("2024-2025", "T3", 3, "2024/2025", "3rd Term")
NEXT_FIRST = Period("2025-2026", "T1", 4, "2025/2026", "1st Term")


def test_only_positive_purpose_balances_move():
    charges = [
        ChargeLine("S1", "Tuition", D("6000")),
        ChargeLine("S1", "Books", D("2000")),
        ChargeLine("S1", "Sports", D("500")),
    ]
    payments = [
        PaymentLine("S1", "Tuition", D("4000")),
        PaymentLine("S1", "Books", D("2000")),
        PaymentLine("S1", "Sports", D("800")),
    ]

    drafts = carry_forward_for_student("S1", FIRST, SECOND, charges, payments, "Previous Balance")

    assert len(drafts) == 1
    draft = drafts[0]
    assert draft.purpose == "Tuition"
    assert draft.amount == D("2000")
    assert draft.carried_over is True
    assert (draft.session_id, draft.term_id) == ("2024-2025", "T2")
    assert draft.description == "Previous Balance"


def test_prior_carried_rows_keep_rolling():
    charges = [
        ChargeLine("S1", "Tuition", D("5000")),
        ChargeLine("S1", "Tuition", D("2000"), carried_over=True),
    ]

    drafts = carry_forward_for_student("S1", SECOND, THIRD, charges, [PaymentLine("S1", "Tuition", D("5000"))], "Previous Balance")

    assert [d.amount for d in drafts] == [D("2000")]


def test_settled_student_carries_nothing():
    drafts = carry_forward_for_student(
        "S1", FIRST, SECOND,
        [ChargeLine("S1", "Tuition", D("100"))],
        [PaymentLine("S1", "Tuition", D("100"))],
        "Previous Balance",
    )
    assert drafts == []


def test_previous_period_follows_sequence_not_names():
    periods = [NEXT_FIRST, THIRD, FIRST, SECOND]

    assert previous_period(periods, "2025-2026", "T1") == THIRD
    assert previous_period(periods, "2024-2025", "T2") == FIRST
    assert previous_period(periods, "2024-2025", "T1") is None


def test_find_period_unknown():
    with pytest.raises(NotFoundError):
        find_period([FIRST], "2030-2031", "T1")


def test_normalize_term_name():
    assert normalize_term_name("first term") == "1st Term"
    assert normalize_term_name(" Third ") == "3rd Term"
    assert normalize_term_name("Summer School") == "Summer School"
