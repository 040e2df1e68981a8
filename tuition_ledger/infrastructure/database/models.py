"""SQLAlchemy ORM models for the billing store"""

import uuid
from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()

MONEY = Numeric(12, 2)

# Conflict keys used by the upserts; they must match the unique constraints below
CHARGE_CONFLICT_KEY = ("student_id", "session_id", "term_id", "purpose", "carried_over", "description")
FEE_CONFLICT_KEY = ("class_level", "stream", "session_id", "term_id", "purpose")
PLAN_CONFLICT_KEY = ("student_id", "session_id", "term_id")


class SchoolStudent(Base):
    """Student directory row; owned by admissions, read-only for billing"""

    __tablename__ = "school_students"

    id = Column(Text, primary_key=True)
    admission_number = Column(Text, nullable=False, default="")
    full_name = Column(Text, nullable=False, default="")
    class_level = Column(Text, nullable=True, index=True)
    stream = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)


class AcademicPeriod(Base):
    """Calendar entry: sequence orders periods chronologically"""

    __tablename__ = "academic_periods"
    __table_args__ = (UniqueConstraint("session_id", "term_id", name="uq_academic_period"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Text, nullable=False)
    term_id = Column(Text, nullable=False)
    session_name = Column(Text, nullable=False, default="")
    term_name = Column(Text, nullable=False, default="")
    sequence = Column(Integer, nullable=False, unique=True)


class FeeStructure(Base):
    """Fee schedule entry; an empty stream applies to every stream of the class"""

    __tablename__ = "fee_structures"
    __table_args__ = (UniqueConstraint(*FEE_CONFLICT_KEY, name="uq_fee_structure_identity"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    class_level = Column(Text, nullable=False)
    stream = Column(Text, nullable=False, default="")
    session_id = Column(Text, nullable=False, index=True)
    term_id = Column(Text, nullable=False, index=True)
    purpose = Column(Text, nullable=False)
    amount = Column(MONEY, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    updated_by = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class StudentCharge(Base):
    """Money owed; current-term and carried-over rows are kept apart"""

    __tablename__ = "student_charges"
    __table_args__ = (UniqueConstraint(*CHARGE_CONFLICT_KEY, name="uq_student_charge"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Text, nullable=False, index=True)
    session_id = Column(Text, nullable=False)
    term_id = Column(Text, nullable=False)
    purpose = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    amount = Column(MONEY, nullable=False)
    carried_over = Column(Boolean, nullable=False, default=False)
    corrected_by = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PaymentRecord(Base):
    """Append-only payment; a reversal is a negative row pointing at the original"""

    __tablename__ = "payment_records"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Text, nullable=False, index=True)
    session_id = Column(Text, nullable=False)
    term_id = Column(Text, nullable=False)
    purpose = Column(Text, nullable=False)
    amount = Column(MONEY, nullable=False)
    method = Column(Text, nullable=False)
    paid_on = Column(Date, nullable=True)
    reference = Column(Text, nullable=True)
    recorded_by = Column(Text, nullable=True)
    reversal_of_id = Column(
        Uuid, ForeignKey("payment_records.id", ondelete="RESTRICT"), nullable=True, unique=True
    )
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class InstallmentPlan(Base):
    """Advisory plan; one per student and period"""

    __tablename__ = "installment_plans"
    __table_args__ = (UniqueConstraint(*PLAN_CONFLICT_KEY, name="uq_installment_plan"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Text, nullable=False)
    session_id = Column(Text, nullable=False)
    term_id = Column(Text, nullable=False)
    total_installments = Column(Integer, nullable=False)
    expected_per_installment = Column(MONEY, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
