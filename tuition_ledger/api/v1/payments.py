"""Payment endpoints - record, list, metadata edit, reversal"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from tuition_ledger.api.dependencies import domain_errors, get_admin_id, get_request_id
from tuition_ledger.api.v1.schemas import (
    PaymentListResponse,
    PaymentMetadataRequest,
    PaymentRequest,
    PaymentSchema,
    ReversalRequest,
)
from tuition_ledger.infrastructure.database.models import PaymentRecord
from tuition_ledger.infrastructure.database.session import get_db
from tuition_ledger.infrastructure.observability.metrics import record_payment, reversals_counter
from tuition_ledger.services.payments import PaymentService

router = APIRouter()


def _payment_schema(payment: PaymentRecord) -> PaymentSchema:
    return PaymentSchema(
        id=payment.id,
        student_id=payment.student_id,
        session_id=payment.session_id,
        term_id=payment.term_id,
        purpose=payment.purpose,
        amount=payment.amount,
        method=payment.method,
        paid_on=payment.paid_on,
        reference=payment.reference,
        recorded_by=payment.recorded_by,
        reversal_of_id=payment.reversal_of_id,
        created_at=payment.created_at,
    )


@router.post("/payments", response_model=PaymentSchema, status_code=201)
def record_payment_endpoint(
    request_body: PaymentRequest,
    request: Request,
    admin_id: str = Depends(get_admin_id),
    db: Session = Depends(get_db),
):
    """
    Append a payment. A matching charge is not required; unbilled purposes
    simply report as "Overpaid".
    """
    with domain_errors(db, get_request_id(request)):
        payment = PaymentService(db).record_payment(
            student_id=request_body.student_id,
            session_id=request_body.session_id,
            term_id=request_body.term_id,
            purpose=request_body.purpose,
            amount=request_body.amount,
            method=request_body.method,
            recorded_by=admin_id,
            paid_on=request_body.paid_on,
            reference=request_body.reference,
        )
        db.commit()
        record_payment(payment.method, payment.amount)
        return _payment_schema(payment)


@router.get("/payments", response_model=PaymentListResponse)
def list_payments(
    student_id: Optional[str] = Query(None),
    session_id: Optional[str] = Query(None),
    term_id: Optional[str] = Query(None),
    purpose: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, gt=0),
    db: Session = Depends(get_db),
):
    """Payments matching the filters, newest first"""
    payments = PaymentService(db).list_payments(
        student_id=student_id, session_id=session_id, term_id=term_id, purpose=purpose, limit=limit
    )
    return PaymentListResponse(items=[_payment_schema(p) for p in payments])


@router.patch("/payments/{payment_id}", response_model=PaymentSchema)
def update_payment_metadata(
    payment_id: uuid.UUID,
    request_body: PaymentMetadataRequest,
    request: Request,
    admin_id: str = Depends(get_admin_id),
    db: Session = Depends(get_db),
):
    """Edit reference / paid_on only; amount changes are rejected by the schema"""
    with domain_errors(db, get_request_id(request)):
        payment = PaymentService(db).update_metadata(
            payment_id, reference=request_body.reference, paid_on=request_body.paid_on
        )
        db.commit()
        return _payment_schema(payment)


@router.post("/payments/{payment_id}/reversal", response_model=PaymentSchema, status_code=201)
def reverse_payment(
    payment_id: uuid.UUID,
    request: Request,
    request_body: Optional[ReversalRequest] = None,
    admin_id: str = Depends(get_admin_id),
    db: Session = Depends(get_db),
):
    """Append a negating row; the original payment is left untouched"""
    with domain_errors(db, get_request_id(request)):
        reversal = PaymentService(db).reverse_payment(
            payment_id,
            recorded_by=admin_id,
            reference=request_body.reference if request_body else None,
        )
        db.commit()
        reversals_counter.inc()
        return _payment_schema(reversal)
