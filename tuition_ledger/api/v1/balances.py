"""Student balance endpoints"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from tuition_ledger.api.dependencies import domain_errors, get_request_id
from tuition_ledger.api.v1.schemas import StudentBalanceResponse, StudentHistoryResponse
from tuition_ledger.infrastructure.database.session import get_db
from tuition_ledger.services.balances import BalanceService

router = APIRouter()


@router.get("/balances/student", response_model=StudentBalanceResponse)
def get_student_balance(
    request: Request,
    student_id: str = Query(..., description="Student identifier"),
    session_id: str = Query(...),
    term_id: str = Query(...),
    db: Session = Depends(get_db),
):
    """
    Authoritative position of a student in a period.

    Returns:
        Aggregate billed/paid/outstanding/status, the current vs carried-over
        allocation, and one entry per purpose
    """
    with domain_errors(db, get_request_id(request)):
        balance = BalanceService(db).get_student_balance(student_id, session_id, term_id)
        return StudentBalanceResponse.model_validate(balance)


@router.get("/balances/student/history", response_model=StudentHistoryResponse)
def get_student_history(
    request: Request,
    student_id: str = Query(..., description="Student identifier"),
    db: Session = Depends(get_db),
):
    with domain_errors(db, get_request_id(request)):
        history = BalanceService(db).get_student_history(student_id)
        return StudentHistoryResponse(
            student_id=student_id,
            periods=[StudentBalanceResponse.model_validate(b) for b in history],
        )
