"""Pydantic schemas for API request/response validation"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

# Money travels as a JSON number; Decimal is kept inside the service
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

PaymentMethod = Literal["Cash", "Transfer", "POS", "Online"]


class PeriodRequest(BaseModel):
    """Request body for period-scoped bulk operations"""

    session_id: str = Field(..., min_length=1, description="Academic session identifier")
    term_id: str = Field(..., min_length=1, description="Academic term identifier")


class PeriodSchema(BaseModel):
    session_id: str
    term_id: str
    sequence: int
    session_name: str
    term_name: str
    label: str


class PeriodListResponse(BaseModel):
    items: List[PeriodSchema]


class PreviousPeriodResponse(BaseModel):
    previous: Optional[PeriodSchema] = None


# Fee schedule


class FeeEntryKey(BaseModel):
    """Identity of a fee schedule entry"""

    class_level: str = Field(..., min_length=1)
    stream: Optional[str] = Field(None, description="Blank or null applies to every stream")
    session_id: str = Field(..., min_length=1)
    term_id: str = Field(..., min_length=1)
    purpose: str = Field(..., min_length=1, description="Free-form tag, e.g. Tuition")


class FeeEntryRequest(FeeEntryKey):
    """Request body for PUT /v1/fee-schedule"""

    amount: Decimal = Field(..., ge=0)
    active: bool = True


class FeeEntrySchema(BaseModel):
    id: uuid.UUID
    class_level: str
    stream: Optional[str]
    session_id: str
    term_id: str
    purpose: str
    amount: Money
    active: bool
    updated_by: Optional[str] = None


class FeeScheduleResponse(BaseModel):
    items: List[FeeEntrySchema]


# Charges


class BatchErrorSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    student_id: str
    reason: str


class GenerateChargesResponse(BaseModel):
    """Response for POST /v1/charges/generate"""

    session_id: str
    term_id: str
    updated_count: int
    error_count: int
    errors: List[BatchErrorSchema]
    message: str


class CarryForwardResponse(BaseModel):
    """Response for POST /v1/charges/carry-forward"""

    session_id: str
    term_id: str
    carried_count: int
    error_count: int
    errors: List[BatchErrorSchema]
    message: str


class PromoteResponse(BaseModel):
    """Response for POST /v1/charges/promote"""

    generated: GenerateChargesResponse
    carried: CarryForwardResponse


class ChargeSchema(BaseModel):
    id: uuid.UUID
    student_id: str
    session_id: str
    term_id: str
    purpose: str
    description: str
    amount: Money
    carried_over: bool
    corrected_by: Optional[str] = None
    created_at: Optional[datetime] = None


class ChargeListResponse(BaseModel):
    items: List[ChargeSchema]


class ChargeCorrectionRequest(BaseModel):
    """Request body for PATCH /v1/charges/{charge_id}"""

    amount: Decimal = Field(..., ge=0)


# Payments


class PaymentRequest(BaseModel):
    """Request body for POST /v1/payments"""

    student_id: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)
    term_id: str = Field(..., min_length=1)
    purpose: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    method: PaymentMethod
    paid_on: Optional[date] = None
    reference: Optional[str] = None


class PaymentMetadataRequest(BaseModel):
    """Request body for PATCH /v1/payments/{payment_id}; amounts cannot be edited"""

    model_config = ConfigDict(extra="forbid")

    reference: Optional[str] = None
    paid_on: Optional[date] = None


class ReversalRequest(BaseModel):
    reference: Optional[str] = None


class PaymentSchema(BaseModel):
    id: uuid.UUID
    student_id: str
    session_id: str
    term_id: str
    purpose: str
    amount: Money
    method: str
    paid_on: Optional[date] = None
    reference: Optional[str] = None
    recorded_by: Optional[str] = None
    reversal_of_id: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None


class PaymentListResponse(BaseModel):
    items: List[PaymentSchema]


# Installment plans


class InstallmentPlanRequest(BaseModel):
    """Request body for PUT /v1/installment-plans"""

    student_id: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)
    term_id: str = Field(..., min_length=1)
    total_installments: int = Field(..., gt=0)
    expected_per_installment: Optional[Decimal] = Field(None, ge=0)


class InstallmentProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    student_id: str
    session_id: str
    term_id: str
    total_installments: int
    expected_per_installment: Money
    billed: Money
    paid: Money
    installments_covered: int
    remaining_installments: int
    remaining_amount: Money
    suggested_schedule: List[Money]


# Balances and reports


class PurposeBalanceSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    purpose: str
    billed: Money
    paid: Money
    balance: Money
    outstanding: Money
    status: str


class AllocationSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    current_fee: Money
    previous_debt: Money
    paid_to_current: Money
    paid_to_previous: Money
    current_outstanding: Money
    previous_outstanding: Money


class StudentBalanceResponse(BaseModel):
    """
    Response for GET /v1/balances/student.

    `status` is the aggregate label and never "Overpaid"; overpayment is reported
    per purpose in `purposes[].status`.
    """

    model_config = ConfigDict(from_attributes=True)

    student_id: str
    session_id: str
    term_id: str
    billed: Money
    paid: Money
    outstanding: Money
    status: str
    allocation: AllocationSchema
    purposes: List[PurposeBalanceSchema]


class StudentHistoryResponse(BaseModel):
    student_id: str
    periods: List[StudentBalanceResponse]


class OwingStudentSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    student_id: str
    full_name: str
    class_level: str
    stream: Optional[str]
    outstanding: Money


class ClassSummaryResponse(BaseModel):
    """Response for GET /v1/reports/class-summary"""

    model_config = ConfigDict(from_attributes=True)

    class_level: str
    session_id: str
    term_id: str
    student_count: int
    expected: Money
    collected: Money
    outstanding: Money
    collection_rate: float
    owing_students: List[OwingStudentSchema]


class PeriodSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    session_id: str
    term_id: str
    classes: List[ClassSummaryResponse]
    expected: Money
    collected: Money
    outstanding: Money
    collection_rate: float


class FeeBreakdownRowSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    student_id: str
    full_name: str
    class_level: str
    stream: Optional[str]
    current_fee: Money
    previous_debt: Money
    total: Money
    current_outstanding: Money
    previous_outstanding: Money


class FeeBreakdownTotals(BaseModel):
    current_fee: Money
    previous_debt: Money
    total: Money
    current_outstanding: Money
    previous_outstanding: Money


class FeeBreakdownResponse(BaseModel):
    session_id: str
    term_id: str
    currency: str
    rows: List[FeeBreakdownRowSchema]
    totals: FeeBreakdownTotals
