"""Unit tests for installment splitting and plan progress"""

import pytest
from decimal import Decimal
from tuition_ledger.domain.exceptions import ValidationError
from tuition_ledger.domain.installments import (
    default_expected_per_installment,
    installment_progress,
    split_amount,
)


def test_split_amount_equal_split():
    """Test evenly divisible amount"""
    parts = split_amount(Decimal("40000"), 4)

    assert parts == [Decimal("10000.00")] * 4
    assert sum(parts) == Decimal("40000")


def test_split_amount_rounding():
    """Test last installment absorbs remainder"""
    parts = split_amount(Decimal("4000.03"), 4)

    assert parts[:3] == [Decimal("1000.00")] * 3
    assert parts[3] == Decimal("1000.03")  # Last absorbs +3 kobo
    assert sum(parts) == Decimal("4000.03")


def test_split_amount_zero_amount():
    assert split_amount(Decimal("0"), 3) == []


def test_split_amount_rejects_non_positive_count():
    with pytest.raises(ValidationError):
        split_amount(Decimal("100"), 0)


def test_default_expected_per_installment():
    assert default_expected_per_installment(Decimal("10000"), 4) == Decimal("2500.00")
    assert default_expected_per_installment(Decimal("0"), 4) == Decimal("0")


def test_progress_counts_whole_installments_only():
    progress = installment_progress("S1", "2024-2025", "T1", 4, Decimal("2500"), Decimal("10000"), Decimal("6000"))

    assert progress.installments_covered == 2
    assert progress.remaining_installments == 2
    assert progress.remaining_amount == Decimal("4000")
    assert progress.suggested_schedule == [Decimal("2500.00")] * 4


def test_progress_capped_at_plan_size():
    progress = installment_progress("S1", "2024-2025", "T1", 3, Decimal("1000"), Decimal("3000"), Decimal("9000"))

    assert progress.installments_covered == 3
    assert progress.remaining_installments == 0
    assert progress.remaining_amount == 0


def test_progress_with_zero_expected_covers_nothing():
    progress = installment_progress("S1", "2024-2025", "T1", 3, Decimal("0"), Decimal("0"), Decimal("500"))

    assert progress.installments_covered == 0
    assert progress.suggested_schedule == []
