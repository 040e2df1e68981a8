"""Installment plan endpoints"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from tuition_ledger.api.dependencies import domain_errors, get_admin_id, get_request_id
from tuition_ledger.api.v1.schemas import InstallmentPlanRequest, InstallmentProgressResponse
from tuition_ledger.infrastructure.database.session import get_db
from tuition_ledger.services.installment_plans import InstallmentPlanService

router = APIRouter()


@router.put("/installment-plans", response_model=InstallmentProgressResponse)
def upsert_installment_plan(
    request_body: InstallmentPlanRequest,
    request: Request,
    admin_id: str = Depends(get_admin_id),
    db: Session = Depends(get_db),
):
    """
    Create or replace the advisory plan for a student and period.

    Returns:
        The plan with progress derived from payments recorded so far
    """
    with domain_errors(db, get_request_id(request)):
        progress = InstallmentPlanService(db).upsert_plan(
            student_id=request_body.student_id,
            session_id=request_body.session_id,
            term_id=request_body.term_id,
            total_installments=request_body.total_installments,
            expected_per_installment=request_body.expected_per_installment,
        )
        db.commit()
        return InstallmentProgressResponse.model_validate(progress)


@router.get("/installment-plans", response_model=InstallmentProgressResponse)
def get_installment_plan(
    request: Request,
    student_id: str = Query(..., description="Student identifier"),
    session_id: str = Query(...),
    term_id: str = Query(...),
    db: Session = Depends(get_db),
):
    with domain_errors(db, get_request_id(request)):
        progress = InstallmentPlanService(db).get_progress(student_id, session_id, term_id)
        return InstallmentProgressResponse.model_validate(progress)
