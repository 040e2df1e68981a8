"""Data access layer for billing entities"""

import uuid
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from tuition_ledger.domain.calendar import normalize_term_name
from tuition_ledger.domain.fees import normalize, normalize_stream
from tuition_ledger.domain.models import (
    ChargeDraft,
    ChargeLine,
    FeeScheduleEntry,
    PaymentLine,
    Period,
    Student,
)
from tuition_ledger.infrastructure.database.models import (
    AcademicPeriod,
    CHARGE_CONFLICT_KEY,
    FEE_CONFLICT_KEY,
    FeeStructure,
    InstallmentPlan,
    PaymentRecord,
    PLAN_CONFLICT_KEY,
    SchoolStudent,
    StudentCharge,
)
from tuition_ledger.infrastructure.database.upsert import upsert_rows
from tuition_ledger.utils.money import to_money

# Sentinel for "do not filter on stream" (None means the all-streams entry)
ANY_STREAM = object()


def _folded(column):
    """SQL side of domain.fees.normalize"""
    return func.lower(func.trim(column))


def _student_from_row(row: SchoolStudent) -> Student:
    return Student(
        student_id=row.id,
        class_level=row.class_level or "",
        stream=normalize_stream(row.stream),
        active=row.is_active,
        full_name=row.full_name or "",
        admission_number=row.admission_number or "",
    )


def _period_from_row(row: AcademicPeriod) -> Period:
    return Period(
        session_id=row.session_id,
        term_id=row.term_id,
        sequence=row.sequence,
        session_name=row.session_name,
        term_name=row.term_name,
    )


class StudentRepository:
    """Read-only access to the student directory"""

    def __init__(self, db: Session):
        self.db = db

    def get_student(self, student_id: str) -> Optional[Student]:
        row = self.db.get(SchoolStudent, student_id)
        return _student_from_row(row) if row else None

    def list_active(self) -> List[Student]:
        rows = (
            self.db.query(SchoolStudent)
            .filter(SchoolStudent.is_active.is_(True))
            .order_by(SchoolStudent.id)
            .all()
        )
        return [_student_from_row(r) for r in rows]

    def list_active_in_class(self, class_level: str) -> List[Student]:
        """Case-insensitive class match"""
        rows = (
            self.db.query(SchoolStudent)
            .filter(SchoolStudent.is_active.is_(True))
            .filter(_folded(SchoolStudent.class_level) == normalize(class_level))
            .order_by(SchoolStudent.id)
            .all()
        )
        return [_student_from_row(r) for r in rows]

    def get_many(self, student_ids: Iterable[str]) -> Dict[str, Student]:
        ids = list(set(student_ids))
        if not ids:
            return {}
        rows = self.db.query(SchoolStudent).filter(SchoolStudent.id.in_(ids)).all()
        return {r.id: _student_from_row(r) for r in rows}


class CalendarRepository:
    """Academic calendar lookups"""

    def __init__(self, db: Session):
        self.db = db

    def list_periods(self) -> List[Period]:
        rows = self.db.query(AcademicPeriod).order_by(AcademicPeriod.sequence).all()
        return [_period_from_row(r) for r in rows]

    def get_period(self, session_id: str, term_id: str) -> Optional[Period]:
        row = (
            self.db.query(AcademicPeriod)
            .filter(AcademicPeriod.session_id == session_id, AcademicPeriod.term_id == term_id)
            .first()
        )
        return _period_from_row(row) if row else None

    def find_by_names(self, session_name: str, term_name: str) -> Optional[Period]:
        """Exact session name, term name matched after normalisation"""
        wanted = normalize_term_name(term_name).strip().lower()
        rows = (
            self.db.query(AcademicPeriod)
            .filter(AcademicPeriod.session_name == session_name)
            .order_by(AcademicPeriod.sequence)
            .all()
        )
        for row in rows:
            if normalize_term_name(row.term_name).strip().lower() == wanted:
                return _period_from_row(row)
        return None


class FeeScheduleRepository:
    """Repository for fee schedule entries"""

    def __init__(self, db: Session):
        self.db = db

    def list_entries(
        self,
        session_id: Optional[str] = None,
        term_id: Optional[str] = None,
        class_level: Optional[str] = None,
        stream=ANY_STREAM,
        active_only: bool = False,
    ) -> List[FeeStructure]:
        query = self.db.query(FeeStructure)
        if session_id:
            query = query.filter(FeeStructure.session_id == session_id)
        if term_id:
            query = query.filter(FeeStructure.term_id == term_id)
        if class_level:
            query = query.filter(_folded(FeeStructure.class_level) == normalize(class_level))
        if stream is not ANY_STREAM:
            query = query.filter(_folded(FeeStructure.stream) == normalize(stream))
        if active_only:
            query = query.filter(FeeStructure.is_active.is_(True))
        return query.order_by(FeeStructure.class_level, FeeStructure.stream, FeeStructure.purpose).all()

    def active_entries_for_period(self, session_id: str, term_id: str) -> List[FeeScheduleEntry]:
        return [
            FeeScheduleEntry(
                class_level=row.class_level,
                stream=normalize_stream(row.stream),
                session_id=row.session_id,
                term_id=row.term_id,
                purpose=row.purpose,
                amount=to_money(row.amount),
                active=row.is_active,
            )
            for row in self.list_entries(session_id=session_id, term_id=term_id, active_only=True)
        ]

    def get_entry(
        self, class_level: str, stream: Optional[str], session_id: str, term_id: str, purpose: str
    ) -> Optional[FeeStructure]:
        """Identity lookup; class level, stream and purpose compare case-insensitively"""
        return (
            self.db.query(FeeStructure)
            .filter(
                _folded(FeeStructure.class_level) == normalize(class_level),
                _folded(FeeStructure.stream) == normalize(stream),
                FeeStructure.session_id == session_id,
                FeeStructure.term_id == term_id,
                _folded(FeeStructure.purpose) == normalize(purpose),
            )
            .order_by(FeeStructure.created_at)
            .first()
        )

    def upsert_entry(self, entry: FeeScheduleEntry, updated_by: Optional[str]) -> FeeStructure:
        """
        Create or overwrite the single entry for this identity.

        An existing entry spelled differently ("ss1"/"tuition" for "SS1"/"Tuition")
        is updated in place and keeps its original spelling.
        """
        existing = self.get_entry(entry.class_level, entry.stream, entry.session_id, entry.term_id, entry.purpose)
        if existing is not None:
            existing.amount = to_money(entry.amount)
            existing.is_active = entry.active
            existing.updated_by = updated_by
            existing.updated_at = func.now()
            self.db.flush()
            self.db.refresh(existing)
            return existing

        row = {
            "id": uuid.uuid4(),
            "class_level": entry.class_level,
            "stream": normalize_stream(entry.stream) or "",
            "session_id": entry.session_id,
            "term_id": entry.term_id,
            "purpose": entry.purpose,
            "amount": to_money(entry.amount),
            "is_active": entry.active,
            "updated_by": updated_by,
        }
        upsert_rows(
            self.db,
            FeeStructure,
            [row],
            conflict_key=FEE_CONFLICT_KEY,
            update_columns=("amount", "is_active", "updated_by"),
        )
        return self.get_entry(entry.class_level, entry.stream, entry.session_id, entry.term_id, entry.purpose)

    def deactivate(self, fee: FeeStructure, updated_by: Optional[str]) -> FeeStructure:
        fee.is_active = False
        fee.updated_by = updated_by
        fee.updated_at = func.now()
        self.db.flush()
        self.db.refresh(fee)
        return fee


class ChargeRepository:
    """Repository for student charges"""

    def __init__(self, db: Session):
        self.db = db

    def upsert_charges(self, drafts: List[ChargeDraft], chunk_size: int = 1000) -> int:
        """Write drafts keyed by (student, session, term, purpose, carried_over, description)"""
        rows = [
            {
                "id": uuid.uuid4(),
                "student_id": d.student_id,
                "session_id": d.session_id,
                "term_id": d.term_id,
                "purpose": d.purpose,
                "description": d.description,
                "amount": to_money(d.amount),
                "carried_over": d.carried_over,
            }
            for d in drafts
        ]
        return upsert_rows(
            self.db,
            StudentCharge,
            rows,
            conflict_key=CHARGE_CONFLICT_KEY,
            update_columns=("amount",),
            chunk_size=chunk_size,
        )

    def delete_carried_except(
        self,
        student_id: str,
        session_id: str,
        term_id: str,
        description: str,
        keep_purposes: Iterable[str],
    ) -> int:
        """Drop carried-over rows whose purpose is no longer owed"""
        query = self.db.query(StudentCharge).filter(
            StudentCharge.student_id == student_id,
            StudentCharge.session_id == session_id,
            StudentCharge.term_id == term_id,
            StudentCharge.carried_over.is_(True),
            StudentCharge.description == description,
        )
        keep = list(keep_purposes)
        if keep:
            query = query.filter(StudentCharge.purpose.notin_(keep))
        return query.delete(synchronize_session=False)

    def list_charges(
        self,
        student_id: Optional[str] = None,
        session_id: Optional[str] = None,
        term_id: Optional[str] = None,
        carried_over: Optional[bool] = None,
    ) -> List[StudentCharge]:
        query = self.db.query(StudentCharge)
        if student_id:
            query = query.filter(StudentCharge.student_id == student_id)
        if session_id:
            query = query.filter(StudentCharge.session_id == session_id)
        if term_id:
            query = query.filter(StudentCharge.term_id == term_id)
        if carried_over is not None:
            query = query.filter(StudentCharge.carried_over.is_(carried_over))
        return query.order_by(
            StudentCharge.student_id, StudentCharge.carried_over, StudentCharge.purpose
        ).all()

    def charge_lines(
        self,
        session_id: Optional[str] = None,
        term_id: Optional[str] = None,
        student_id: Optional[str] = None,
    ) -> List[ChargeLine]:
        return [
            ChargeLine(
                student_id=c.student_id,
                purpose=c.purpose,
                amount=to_money(c.amount),
                carried_over=c.carried_over,
                session_id=c.session_id,
                term_id=c.term_id,
            )
            for c in self.list_charges(student_id=student_id, session_id=session_id, term_id=term_id)
        ]

    def get_charge(self, charge_id: uuid.UUID) -> Optional[StudentCharge]:
        return self.db.get(StudentCharge, charge_id)

    def correct_amount(self, charge: StudentCharge, amount: Decimal, corrected_by: Optional[str]) -> StudentCharge:
        charge.amount = to_money(amount)
        charge.corrected_by = corrected_by
        charge.updated_at = func.now()
        self.db.flush()
        self.db.refresh(charge)
        return charge

    def periods_for_student(self, student_id: str) -> Set[Tuple[str, str]]:
        rows = (
            self.db.query(StudentCharge.session_id, StudentCharge.term_id)
            .filter(StudentCharge.student_id == student_id)
            .distinct()
            .all()
        )
        return {(r[0], r[1]) for r in rows}


class PaymentRepository:
    """Repository for payment records (insert-only apart from metadata)"""

    def __init__(self, db: Session):
        self.db = db

    def create_payment(
        self,
        student_id: str,
        session_id: str,
        term_id: str,
        purpose: str,
        amount: Decimal,
        method: str,
        recorded_by: Optional[str],
        paid_on: Optional[date] = None,
        reference: Optional[str] = None,
        reversal_of_id: Optional[uuid.UUID] = None,
    ) -> PaymentRecord:
        """Persist payment to database"""
        payment = PaymentRecord(
            student_id=student_id,
            session_id=session_id,
            term_id=term_id,
            purpose=purpose,
            amount=to_money(amount),
            method=method,
            paid_on=paid_on,
            reference=reference,
            recorded_by=recorded_by,
            reversal_of_id=reversal_of_id,
        )
        self.db.add(payment)
        self.db.flush()  # Get ID without committing
        self.db.refresh(payment)
        return payment

    def get_payment(self, payment_id: uuid.UUID) -> Optional[PaymentRecord]:
        return self.db.get(PaymentRecord, payment_id)

    def get_reversal(self, payment_id: uuid.UUID) -> Optional[PaymentRecord]:
        return (
            self.db.query(PaymentRecord)
            .filter(PaymentRecord.reversal_of_id == payment_id)
            .first()
        )

    def list_payments(
        self,
        student_id: Optional[str] = None,
        session_id: Optional[str] = None,
        term_id: Optional[str] = None,
        purpose: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[PaymentRecord]:
        """Newest first"""
        query = self.db.query(PaymentRecord)
        if student_id:
            query = query.filter(PaymentRecord.student_id == student_id)
        if session_id:
            query = query.filter(PaymentRecord.session_id == session_id)
        if term_id:
            query = query.filter(PaymentRecord.term_id == term_id)
        if purpose:
            query = query.filter(PaymentRecord.purpose == purpose)
        query = query.order_by(PaymentRecord.created_at.desc(), PaymentRecord.id)
        if limit:
            query = query.limit(limit)
        return query.all()

    def payment_lines(
        self,
        session_id: Optional[str] = None,
        term_id: Optional[str] = None,
        student_id: Optional[str] = None,
    ) -> List[PaymentLine]:
        return [
            PaymentLine(
                student_id=p.student_id,
                purpose=p.purpose,
                amount=to_money(p.amount),
                session_id=p.session_id,
                term_id=p.term_id,
            )
            for p in self.list_payments(student_id=student_id, session_id=session_id, term_id=term_id)
        ]

    def update_metadata(
        self,
        payment: PaymentRecord,
        reference: Optional[str] = None,
        paid_on: Optional[date] = None,
    ) -> PaymentRecord:
        if reference is not None:
            payment.reference = reference
        if paid_on is not None:
            payment.paid_on = paid_on
        self.db.flush()
        self.db.refresh(payment)
        return payment

    def periods_for_student(self, student_id: str) -> Set[Tuple[str, str]]:
        rows = (
            self.db.query(PaymentRecord.session_id, PaymentRecord.term_id)
            .filter(PaymentRecord.student_id == student_id)
            .distinct()
            .all()
        )
        return {(r[0], r[1]) for r in rows}


class InstallmentPlanRepository:
    """Repository for advisory installment plans"""

    def __init__(self, db: Session):
        self.db = db

    def upsert_plan(
        self,
        student_id: str,
        session_id: str,
        term_id: str,
        total_installments: int,
        expected_per_installment: Decimal,
    ) -> InstallmentPlan:
        upsert_rows(
            self.db,
            InstallmentPlan,
            [
                {
                    "id": uuid.uuid4(),
                    "student_id": student_id,
                    "session_id": session_id,
                    "term_id": term_id,
                    "total_installments": total_installments,
                    "expected_per_installment": to_money(expected_per_installment),
                }
            ],
            conflict_key=PLAN_CONFLICT_KEY,
            update_columns=("total_installments", "expected_per_installment"),
        )
        return self.get_plan(student_id, session_id, term_id)

    def get_plan(self, student_id: str, session_id: str, term_id: str) -> Optional[InstallmentPlan]:
        return (
            self.db.query(InstallmentPlan)
            .filter(
                InstallmentPlan.student_id == student_id,
                InstallmentPlan.session_id == session_id,
                InstallmentPlan.term_id == term_id,
            )
            .first()
        )
