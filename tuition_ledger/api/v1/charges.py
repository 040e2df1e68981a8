"""Charge endpoints - generation, carry-forward, promotion, listing, correction"""

import time
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from tuition_ledger.api.dependencies import domain_errors, get_admin_id, get_request_id
from tuition_ledger.api.v1.schemas import (
    BatchErrorSchema,
    CarryForwardResponse,
    ChargeCorrectionRequest,
    ChargeListResponse,
    ChargeSchema,
    GenerateChargesResponse,
    PeriodRequest,
    PromoteResponse,
)
from tuition_ledger.domain.models import BatchResult
from tuition_ledger.infrastructure.database.models import StudentCharge
from tuition_ledger.infrastructure.database.session import get_db
from tuition_ledger.infrastructure.observability.logging import log_batch_result
from tuition_ledger.infrastructure.observability.metrics import record_batch
from tuition_ledger.services.charges import ChargeService

router = APIRouter()


def _charge_schema(charge: StudentCharge) -> ChargeSchema:
    return ChargeSchema(
        id=charge.id,
        student_id=charge.student_id,
        session_id=charge.session_id,
        term_id=charge.term_id,
        purpose=charge.purpose,
        description=charge.description,
        amount=charge.amount,
        carried_over=charge.carried_over,
        corrected_by=charge.corrected_by,
        created_at=charge.created_at,
    )


def _errors(result: BatchResult):
    return [BatchErrorSchema.model_validate(e) for e in result.errors]


def _generated_response(result: BatchResult) -> GenerateChargesResponse:
    return GenerateChargesResponse(
        session_id=result.session_id,
        term_id=result.term_id,
        updated_count=result.written,
        error_count=result.error_count,
        errors=_errors(result),
        message=result.summary(),
    )


def _carried_response(result: BatchResult) -> CarryForwardResponse:
    return CarryForwardResponse(
        session_id=result.session_id,
        term_id=result.term_id,
        carried_count=result.written,
        error_count=result.error_count,
        errors=_errors(result),
        message=result.summary(),
    )


def _observe(request_id: str, result: BatchResult, kind: str, start_time: float) -> None:
    record_batch(result, kind)
    log_batch_result(request_id, result, (time.time() - start_time) * 1000)


@router.post("/charges/generate", response_model=GenerateChargesResponse)
def generate_charges(
    request_body: PeriodRequest,
    request: Request,
    admin_id: str = Depends(get_admin_id),
    db: Session = Depends(get_db),
):
    """
    Expand the active fee schedule of a period into current-term charges.

    Idempotent: repeating the call with an unchanged schedule changes nothing.
    """
    start_time = time.time()
    request_id = get_request_id(request)

    with domain_errors(db, request_id):
        result = ChargeService(db).generate_charges(request_body.session_id, request_body.term_id)
        db.commit()

    _observe(request_id, result, "current", start_time)
    return _generated_response(result)


@router.post("/charges/carry-forward", response_model=CarryForwardResponse)
def carry_forward_balances(
    request_body: PeriodRequest,
    request: Request,
    admin_id: str = Depends(get_admin_id),
    db: Session = Depends(get_db),
):
    """Snapshot unpaid balances of the preceding period into this one"""
    start_time = time.time()
    request_id = get_request_id(request)

    with domain_errors(db, request_id):
        result = ChargeService(db).carry_forward_balances(request_body.session_id, request_body.term_id)
        db.commit()

    _observe(request_id, result, "carried_over", start_time)
    return _carried_response(result)


@router.post("/charges/promote", response_model=PromoteResponse)
def promote(
    request_body: PeriodRequest,
    request: Request,
    admin_id: str = Depends(get_admin_id),
    db: Session = Depends(get_db),
):
    """
    Flow:
    1. Generate current-term charges for the period
    2. Carry forward unpaid balances of the preceding period
    """
    start_time = time.time()
    request_id = get_request_id(request)

    with domain_errors(db, request_id):
        generated, carried = ChargeService(db).promote(request_body.session_id, request_body.term_id)
        db.commit()

    _observe(request_id, generated, "current", start_time)
    _observe(request_id, carried, "carried_over", start_time)
    return PromoteResponse(generated=_generated_response(generated), carried=_carried_response(carried))


@router.get("/charges", response_model=ChargeListResponse)
def list_charges(
    student_id: Optional[str] = Query(None),
    session_id: Optional[str] = Query(None),
    term_id: Optional[str] = Query(None),
    carried_over: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
):
    charges = ChargeService(db).list_charges(
        student_id=student_id, session_id=session_id, term_id=term_id, carried_over=carried_over
    )
    return ChargeListResponse(items=[_charge_schema(c) for c in charges])


@router.patch("/charges/{charge_id}", response_model=ChargeSchema)
def correct_charge(
    charge_id: uuid.UUID,
    request_body: ChargeCorrectionRequest,
    request: Request,
    admin_id: str = Depends(get_admin_id),
    db: Session = Depends(get_db),
):
    """Administrative correction of a single charge amount"""
    with domain_errors(db, get_request_id(request)):
        charge = ChargeService(db).correct_charge(charge_id, request_body.amount, corrected_by=admin_id)
        db.commit()
        return _charge_schema(charge)
