"""Dependency injection for FastAPI endpoints"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from fastapi import Header, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tuition_ledger.domain.exceptions import DuplicateReversalError, NotFoundError, ValidationError


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_admin_id(x_admin_id: Optional[str] = Header(None)) -> str:
    """
    Caller identity already verified by the auth layer in front of this service.

    Mutating endpoints refuse requests that arrive without one.
    """
    if not x_admin_id or not x_admin_id.strip():
        raise HTTPException(status_code=401, detail="Administrator identity required")
    return x_admin_id.strip()


@contextmanager
def domain_errors(db: Session, request_id: str) -> Iterator[None]:
    """Roll back and translate domain/database failures into HTTP errors"""
    try:
        yield
    except ValidationError as e:
        db.rollback()
        logging.warning(f"Validation error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))
    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except DuplicateReversalError as e:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(e))
    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Database error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")
