"""Pytest fixtures for testing"""

import pytest
from decimal import Decimal
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session
from tuition_ledger.api.main import create_app
from tuition_ledger.infrastructure.database.models import AcademicPeriod, Base, FeeStructure, SchoolStudent
from tuition_ledger.infrastructure.database.session import build_engine, get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = build_engine(TEST_DATABASE_URL)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

SESSION = "2024-2025"
NEXT_SESSION = "2025-2026"
T1, T2, T3 = "2024-T1", "2024-T2", "2024-T3"
NEXT_T1 = "2025-T1"

ADMIN_HEADERS = {"X-Admin-Id": "bursar-1"}


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def calendar(db: Session) -> list[AcademicPeriod]:
    """Three terms of one session followed by the first term of the next"""
    periods = [
        AcademicPeriod(session_id=SESSION, term_id=T1, session_name="2024/2025", term_name="1st Term", sequence=1),
        AcademicPeriod(session_id=SESSION, term_id=T2, session_name="2024/2025", term_name="2nd Term", sequence=2),
        AcademicPeriod(session_id=SESSION, term_id=T3, session_name="2024/2025", term_name="3rd Term", sequence=3),
        AcademicPeriod(session_id=NEXT_SESSION, term_id=NEXT_T1, session_name="2025/2026", term_name="1st Term", sequence=4),
    ]
    db.add_all(periods)
    db.commit()
    return periods


@pytest.fixture
def students(db: Session) -> list[SchoolStudent]:
    """SS1 science and arts students, a JSS1 student, and a withdrawn SS1 student"""
    rows = [
        SchoolStudent(id="S1", admission_number="ADM/001", full_name="Ada Obi", class_level="SS1", stream="Science"),
        SchoolStudent(id="S2", admission_number="ADM/002", full_name="Bola Ade", class_level="ss1", stream="ARTS"),
        SchoolStudent(id="S3", admission_number="ADM/003", full_name="Chidi Eze", class_level="JSS1", stream=None),
        SchoolStudent(
            id="S4", admission_number="ADM/004", full_name="Dayo Musa", class_level="SS1", stream="Science",
            is_active=False,
        ),
    ]
    db.add_all(rows)
    db.commit()
    return rows


def add_fee(db: Session, class_level: str, purpose: str, amount, stream: str = "", term_id: str = T1,
            session_id: str = SESSION, is_active: bool = True) -> FeeStructure:
    fee = FeeStructure(
        class_level=class_level,
        stream=stream,
        session_id=session_id,
        term_id=term_id,
        purpose=purpose,
        amount=Decimal(str(amount)),
        is_active=is_active,
    )
    db.add(fee)
    db.commit()
    return fee


@pytest.fixture
def ss1_fees(db: Session, calendar) -> list[FeeStructure]:
    """Class-wide SS1 tuition plus science and arts top-ups for the first term"""
    return [
        add_fee(db, "SS1", "Tuition", 5000),
        add_fee(db, "SS1", "Tuition", 1000, stream="Science"),
        add_fee(db, "SS1", "Tuition", 3000, stream="Arts"),
        add_fee(db, "SS1", "Books", 2000),
        add_fee(db, "JSS1", "Tuition", 4000),
    ]
