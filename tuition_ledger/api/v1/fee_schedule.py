"""Fee schedule endpoints - list, upsert, deactivate"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from tuition_ledger.api.dependencies import domain_errors, get_admin_id, get_request_id
from tuition_ledger.api.v1.schemas import FeeEntryKey, FeeEntryRequest, FeeEntrySchema, FeeScheduleResponse
from tuition_ledger.infrastructure.database.models import FeeStructure
from tuition_ledger.infrastructure.database.repositories import ANY_STREAM
from tuition_ledger.infrastructure.database.session import get_db
from tuition_ledger.services.fee_schedule import FeeScheduleService

router = APIRouter()


def _entry_schema(fee: FeeStructure) -> FeeEntrySchema:
    return FeeEntrySchema(
        id=fee.id,
        class_level=fee.class_level,
        stream=fee.stream or None,
        session_id=fee.session_id,
        term_id=fee.term_id,
        purpose=fee.purpose,
        amount=fee.amount,
        active=fee.is_active,
        updated_by=fee.updated_by,
    )


@router.get("/fee-schedule", response_model=FeeScheduleResponse)
def list_fee_schedule(
    session_id: Optional[str] = Query(None),
    term_id: Optional[str] = Query(None),
    class_level: Optional[str] = Query(None),
    stream: Optional[str] = Query(None, description='Stream name, or "null" for all-streams entries'),
    active_only: bool = Query(False),
    db: Session = Depends(get_db),
):
    """List fee entries; omitting stream does not filter on it"""
    if stream is None:
        stream_filter = ANY_STREAM
    elif stream.lower() == "null":
        stream_filter = None
    else:
        stream_filter = stream

    entries = FeeScheduleService(db).list_entries(
        session_id=session_id,
        term_id=term_id,
        class_level=class_level,
        stream=stream_filter,
        active_only=active_only,
    )
    return FeeScheduleResponse(items=[_entry_schema(e) for e in entries])


@router.put("/fee-schedule", response_model=FeeEntrySchema)
def upsert_fee_entry(
    request_body: FeeEntryRequest,
    request: Request,
    admin_id: str = Depends(get_admin_id),
    db: Session = Depends(get_db),
):
    """
    Create or update the entry for (class level, stream, session, term, purpose).

    Changing an amount does not touch existing charges until charges are regenerated.
    """
    with domain_errors(db, get_request_id(request)):
        fee = FeeScheduleService(db).upsert_entry(
            class_level=request_body.class_level,
            session_id=request_body.session_id,
            term_id=request_body.term_id,
            purpose=request_body.purpose,
            amount=request_body.amount,
            stream=request_body.stream,
            active=request_body.active,
            updated_by=admin_id,
        )
        db.commit()
        return _entry_schema(fee)


@router.post("/fee-schedule/deactivate", response_model=FeeEntrySchema)
def deactivate_fee_entry(
    request_body: FeeEntryKey,
    request: Request,
    admin_id: str = Depends(get_admin_id),
    db: Session = Depends(get_db),
):
    """
    Entries are never deleted so historical charge generation stays reproducible.

    Regenerating charges does not remove charge rows already written from this
    entry; correct them with PATCH /v1/charges/{charge_id}.
    """
    with domain_errors(db, get_request_id(request)):
        fee = FeeScheduleService(db).deactivate_entry(
            class_level=request_body.class_level,
            session_id=request_body.session_id,
            term_id=request_body.term_id,
            purpose=request_body.purpose,
            stream=request_body.stream,
            updated_by=admin_id,
        )
        db.commit()
        return _entry_schema(fee)
