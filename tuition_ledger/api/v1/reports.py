"""Reporting endpoints - folds over the balance calculator"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from tuition_ledger.api.dependencies import domain_errors, get_request_id
from tuition_ledger.api.v1.schemas import (
    ClassSummaryResponse,
    FeeBreakdownResponse,
    FeeBreakdownRowSchema,
    FeeBreakdownTotals,
    PeriodSummaryResponse,
)
from tuition_ledger.config import settings
from tuition_ledger.infrastructure.database.session import get_db
from tuition_ledger.services.balances import BalanceService

router = APIRouter()


@router.get("/reports/class-summary", response_model=ClassSummaryResponse)
def get_class_summary(
    request: Request,
    class_level: str = Query(...),
    session_id: str = Query(...),
    term_id: str = Query(...),
    db: Session = Depends(get_db),
):
    """Expected, collected and outstanding for a class, with the students still owing"""
    with domain_errors(db, get_request_id(request)):
        summary = BalanceService(db).get_class_summary(class_level, session_id, term_id)
        return ClassSummaryResponse.model_validate(summary)


@router.get("/reports/period-summary", response_model=PeriodSummaryResponse)
def get_period_summary(
    request: Request,
    session_id: str = Query(...),
    term_id: str = Query(...),
    db: Session = Depends(get_db),
):
    with domain_errors(db, get_request_id(request)):
        summary = BalanceService(db).get_period_summary(session_id, term_id)
        return PeriodSummaryResponse.model_validate(summary)


@router.get("/reports/fee-breakdown", response_model=FeeBreakdownResponse)
def get_fee_breakdown(
    request: Request,
    session_id: str = Query(...),
    term_id: str = Query(...),
    db: Session = Depends(get_db),
):
    """Current fee vs previous debt per student, payments applied to current first"""
    with domain_errors(db, get_request_id(request)):
        breakdown = BalanceService(db).get_fee_breakdown(session_id, term_id)
        return FeeBreakdownResponse(
            session_id=session_id,
            term_id=term_id,
            currency=settings.currency,
            rows=[FeeBreakdownRowSchema.model_validate(r) for r in breakdown.rows],
            totals=FeeBreakdownTotals(
                current_fee=breakdown.current_fee,
                previous_debt=breakdown.previous_debt,
                total=breakdown.total,
                current_outstanding=breakdown.current_outstanding,
                previous_outstanding=breakdown.previous_outstanding,
            ),
        )
