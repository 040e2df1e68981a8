"""Domain models - pure Python dataclasses representing billing entities"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from tuition_ledger.utils.money import ZERO

PAYMENT_METHODS = ("Cash", "Transfer", "POS", "Online")


@dataclass(frozen=True)
class Student:
    """Active roster entry from the student directory"""

    student_id: str
    class_level: str
    stream: Optional[str] = None
    active: bool = True
    full_name: str = ""
    admission_number: str = ""


@dataclass(frozen=True)
class Period:
    """A (session, term) billing cycle; sequence gives chronological order"""

    session_id: str
    term_id: str
    sequence: int
    session_name: str = ""
    term_name: str = ""

    @property
    def key(self) -> tuple[str, str]:
        return (self.session_id, self.term_id)

    @property
    def label(self) -> str:
        return f"{self.session_name} {self.term_name}".strip() or f"{self.session_id}/{self.term_id}"


@dataclass(frozen=True)
class FeeScheduleEntry:
    """One fee amount for a class level (and optionally a stream) in a period"""

    class_level: str
    session_id: str
    term_id: str
    purpose: str
    amount: Decimal
    stream: Optional[str] = None  # None applies to every stream of the class
    active: bool = True


@dataclass(frozen=True)
class ChargeDraft:
    """A charge row ready to be upserted"""

    student_id: str
    session_id: str
    term_id: str
    purpose: str
    amount: Decimal
    carried_over: bool
    description: str

    @property
    def conflict_key(self) -> tuple:
        return (
            self.student_id,
            self.session_id,
            self.term_id,
            self.purpose,
            self.carried_over,
            self.description,
        )


@dataclass(frozen=True)
class ChargeLine:
    """Minimal charge view consumed by the balance calculator"""

    student_id: str
    purpose: str
    amount: Decimal
    carried_over: bool = False
    session_id: str = ""
    term_id: str = ""


@dataclass(frozen=True)
class PaymentLine:
    """Minimal payment view consumed by the balance calculator (reversals are negative)"""

    student_id: str
    purpose: str
    amount: Decimal
    session_id: str = ""
    term_id: str = ""


@dataclass
class LedgerLine:
    """Derived per-purpose position, never persisted"""

    student_id: str
    session_id: str
    term_id: str
    purpose: str
    total_charged: Decimal
    total_paid: Decimal

    @property
    def balance(self) -> Decimal:
        return self.total_charged - self.total_paid


@dataclass
class PurposeBalance:
    purpose: str
    billed: Decimal
    paid: Decimal
    balance: Decimal
    outstanding: Decimal
    status: str


@dataclass
class Allocation:
    """Split of a payment pool between current-term and carried-over debt"""

    current_fee: Decimal
    previous_debt: Decimal
    paid_to_current: Decimal
    paid_to_previous: Decimal
    current_outstanding: Decimal
    previous_outstanding: Decimal


@dataclass
class StudentBalance:
    """Aggregate position of one student in one period"""

    student_id: str
    session_id: str
    term_id: str
    billed: Decimal
    paid: Decimal
    outstanding: Decimal
    status: str
    allocation: Allocation
    purposes: List[PurposeBalance] = field(default_factory=list)


@dataclass
class OwingStudent:
    student_id: str
    full_name: str
    class_level: str
    stream: Optional[str]
    outstanding: Decimal


@dataclass
class ClassSummary:
    class_level: str
    session_id: str
    term_id: str
    student_count: int
    expected: Decimal
    collected: Decimal
    outstanding: Decimal
    collection_rate: float
    owing_students: List[OwingStudent] = field(default_factory=list)


@dataclass
class PeriodSummary:
    session_id: str
    term_id: str
    classes: List[ClassSummary]
    expected: Decimal
    collected: Decimal
    outstanding: Decimal
    collection_rate: float


@dataclass
class FeeBreakdownRow:
    student_id: str
    full_name: str
    class_level: str
    stream: Optional[str]
    current_fee: Decimal
    previous_debt: Decimal
    total: Decimal
    current_outstanding: Decimal
    previous_outstanding: Decimal


@dataclass
class FeeBreakdown:
    rows: List[FeeBreakdownRow]
    current_fee: Decimal = ZERO
    previous_debt: Decimal = ZERO
    total: Decimal = ZERO
    current_outstanding: Decimal = ZERO
    previous_outstanding: Decimal = ZERO


@dataclass
class BatchError:
    """One skipped student in a bulk operation"""

    student_id: str
    reason: str


@dataclass
class BatchResult:
    """Outcome of a bulk operation: rows written plus per-student skips"""

    operation: str
    session_id: str
    term_id: str
    written: int = 0
    errors: List[BatchError] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def summary(self) -> str:
        return f"{self.written} records updated, {self.error_count} errors"


@dataclass
class InstallmentProgress:
    """Advisory view of a plan against what has actually been paid"""

    student_id: str
    session_id: str
    term_id: str
    total_installments: int
    expected_per_installment: Decimal
    billed: Decimal
    paid: Decimal
    installments_covered: int
    remaining_installments: int
    remaining_amount: Decimal
    suggested_schedule: List[Decimal] = field(default_factory=list)
