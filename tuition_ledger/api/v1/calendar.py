"""Academic calendar endpoints"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from tuition_ledger.api.dependencies import domain_errors, get_request_id
from tuition_ledger.api.v1.schemas import PeriodListResponse, PeriodSchema, PreviousPeriodResponse
from tuition_ledger.domain.models import Period
from tuition_ledger.infrastructure.database.session import get_db
from tuition_ledger.services.calendar import CalendarService

router = APIRouter()


def _period_schema(period: Period) -> PeriodSchema:
    return PeriodSchema(
        session_id=period.session_id,
        term_id=period.term_id,
        sequence=period.sequence,
        session_name=period.session_name,
        term_name=period.term_name,
        label=period.label,
    )


@router.get("/calendar/periods", response_model=PeriodListResponse)
def list_periods(db: Session = Depends(get_db)):
    return PeriodListResponse(items=[_period_schema(p) for p in CalendarService(db).list_periods()])


@router.get("/calendar/resolve", response_model=PeriodSchema)
def resolve_period(
    request: Request,
    session_name: str = Query(..., description='Session display name, e.g. "2024/2025"'),
    term_name: str = Query(..., description='Term name; "first term", "1st" and "1st Term" are equivalent'),
    db: Session = Depends(get_db),
):
    with domain_errors(db, get_request_id(request)):
        return _period_schema(CalendarService(db).resolve(session_name, term_name))


@router.get("/calendar/previous", response_model=PreviousPeriodResponse)
def get_previous_period(
    request: Request,
    session_id: str = Query(...),
    term_id: str = Query(...),
    db: Session = Depends(get_db),
):
    """The period carry-forward would read balances from"""
    with domain_errors(db, get_request_id(request)):
        previous = CalendarService(db).get_previous(session_id, term_id)
        return PreviousPeriodResponse(previous=_period_schema(previous) if previous else None)
