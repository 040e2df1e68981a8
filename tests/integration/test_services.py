"""Integration tests for the billing services against a real database"""

import uuid
import pytest
from decimal import Decimal
from conftest import NEXT_SESSION, NEXT_T1, SESSION, T1, T2, T3, add_fee
from tuition_ledger.domain.exceptions import DuplicateReversalError, NotFoundError, ValidationError
from tuition_ledger.infrastructure.database.models import PaymentRecord, SchoolStudent, StudentCharge
from tuition_ledger.services.balances import BalanceService
from tuition_ledger.services.calendar import CalendarService
from tuition_ledger.services.charges import ChargeService
from tuition_ledger.services.fee_schedule import FeeScheduleService
from tuition_ledger.services.installment_plans import InstallmentPlanService
from tuition_ledger.services.payments import PaymentService

D = Decimal


def pay(db, student_id, amount, purpose="Tuition", term_id=T1, session_id=SESSION, method="Cash"):
    payment = PaymentService(db).record_payment(
        student_id=student_id,
        session_id=session_id,
        term_id=term_id,
        purpose=purpose,
        amount=D(str(amount)),
        method=method,
        recorded_by="bursar-1",
    )
    db.commit()
    return payment


def current_charges(db, student_id, term_id=T1):
    return {
        c.purpose: c.amount
        for c in db.query(StudentCharge).filter_by(student_id=student_id, term_id=term_id, carried_over=False)
    }


def test_end_to_end_generate_pay_promote(db, calendar, students):
    add_fee(db, "SS1", "Tuition", 5000)
    add_fee(db, "SS1", "Tuition", 1000, stream="Science")

    result = ChargeService(db).generate_charges(SESSION, T1)
    db.commit()

    assert result.error_count == 0
    s1_charges = db.query(StudentCharge).filter_by(student_id="S1", term_id=T1).all()
    assert len(s1_charges) == 1
    assert s1_charges[0].purpose == "Tuition"
    assert s1_charges[0].amount == D("6000")
    assert s1_charges[0].carried_over is False

    pay(db, "S1", 4000)
    balance = BalanceService(db).get_student_balance("S1", SESSION, T1)
    assert (balance.billed, balance.paid, balance.outstanding) == (D("6000"), D("4000"), D("2000"))
    assert balance.status == "Outstanding"

    ChargeService(db).carry_forward_balances(SESSION, T2)
    db.commit()

    carried = db.query(StudentCharge).filter_by(student_id="S1", term_id=T2).all()
    assert len(carried) == 1
    assert carried[0].purpose == "Tuition"
    assert carried[0].amount == D("2000")
    assert carried[0].carried_over is True

    t2 = BalanceService(db).get_student_balance("S1", SESSION, T2)
    assert (t2.billed, t2.paid, t2.outstanding) == (D("2000"), D("0"), D("2000"))
    assert t2.allocation.previous_debt == D("2000")
    assert t2.allocation.current_fee == 0


def test_generate_charges_is_idempotent(db, students, ss1_fees):
    service = ChargeService(db)
    service.generate_charges(SESSION, T1)
    db.commit()
    first = {(c.student_id, c.purpose): c.amount for c in db.query(StudentCharge).all()}

    service.generate_charges(SESSION, T1)
    db.commit()
    second = {(c.student_id, c.purpose): c.amount for c in db.query(StudentCharge).all()}

    assert first == second
    assert db.query(StudentCharge).count() == len(first)


def test_generate_charges_heterogeneous_per_stream(db, students, ss1_fees):
    result = ChargeService(db).generate_charges(SESSION, T1)
    db.commit()

    assert current_charges(db, "S1") == {"Tuition": D("6000"), "Books": D("2000")}
    assert current_charges(db, "S2") == {"Tuition": D("8000"), "Books": D("2000")}
    assert current_charges(db, "S3") == {"Tuition": D("4000")}
    # Withdrawn students are not billed
    assert current_charges(db, "S4") == {}
    assert result.written == 5
    assert result.summary() == "5 records updated, 0 errors"


def test_override_policy_replaces_class_wide_fee(db, students, ss1_fees):
    ChargeService(db, stream_fee_policy="override").generate_charges(SESSION, T1)
    db.commit()

    assert current_charges(db, "S1") == {"Tuition": D("1000"), "Books": D("2000")}


def test_regeneration_overwrites_after_fee_change(db, students, ss1_fees):
    service = ChargeService(db)
    service.generate_charges(SESSION, T1)
    db.commit()

    FeeScheduleService(db).upsert_entry("SS1", SESSION, T1, "Tuition", D("5500"), updated_by="bursar-1")
    db.commit()
    service.generate_charges(SESSION, T1)
    db.commit()

    assert current_charges(db, "S1")["Tuition"] == D("6500")
    assert db.query(StudentCharge).filter_by(student_id="S1", purpose="Tuition").count() == 1


def test_generate_charges_without_entries_is_noop(db, calendar, students):
    result = ChargeService(db).generate_charges(SESSION, T2)

    assert result.written == 0
    assert result.error_count == 0
    assert db.query(StudentCharge).count() == 0


def test_generate_charges_unknown_period(db, calendar, students):
    with pytest.raises(NotFoundError):
        ChargeService(db).generate_charges("1999-2000", "T9")


def test_student_without_class_is_reported_not_fatal(db, students, ss1_fees):
    db.add(SchoolStudent(id="S5", full_name="No Class", class_level=None))
    db.commit()

    result = ChargeService(db).generate_charges(SESSION, T1)
    db.commit()

    assert result.error_count == 1
    assert result.errors[0].student_id == "S5"
    assert current_charges(db, "S1")["Tuition"] == D("6000")


def test_carry_forward_only_positive_balances(db, students, ss1_fees):
    ChargeService(db).generate_charges(SESSION, T1)
    db.commit()
    pay(db, "S1", 6000)            # Tuition settled
    pay(db, "S1", 500, "Books")    # Books partly paid
    pay(db, "S3", 5000)            # Overpaid

    result = ChargeService(db).carry_forward_balances(SESSION, T2)
    db.commit()

    carried = {(c.student_id, c.purpose): c.amount for c in db.query(StudentCharge).filter_by(term_id=T2)}
    assert carried == {
        ("S1", "Books"): D("1500"),
        ("S2", "Tuition"): D("8000"),
        ("S2", "Books"): D("2000"),
    }
    assert result.written == 3


def test_carry_forward_refresh_after_late_payment(db, students, ss1_fees):
    service = ChargeService(db)
    service.generate_charges(SESSION, T1)
    db.commit()
    service.carry_forward_balances(SESSION, T2)
    db.commit()

    pay(db, "S1", 2000, "Books")
    pay(db, "S1", 1000, "Tuition")
    service.carry_forward_balances(SESSION, T2)
    db.commit()

    carried = {c.purpose: c.amount for c in db.query(StudentCharge).filter_by(student_id="S1", term_id=T2)}
    assert carried == {"Tuition": D("5000")}


def test_carry_forward_first_period_is_noop(db, students, ss1_fees):
    result = ChargeService(db).carry_forward_balances(SESSION, T1)

    assert result.written == 0
    assert result.error_count == 0


def test_carry_forward_reports_students_missing_from_directory(db, students, ss1_fees):
    db.add(StudentCharge(
        student_id="GHOST", session_id=SESSION, term_id=T1, purpose="Tuition",
        description="Current Term Fee", amount=D("100"), carried_over=False,
    ))
    db.commit()

    result = ChargeService(db).carry_forward_balances(SESSION, T2)

    assert [e.student_id for e in result.errors] == ["GHOST"]
    assert result.errors[0].reason == "student not found in directory"


def test_debt_rolls_across_session_boundary(db, students, ss1_fees):
    service = ChargeService(db)
    service.generate_charges(SESSION, T1)
    db.commit()
    for term_id in (T2, T3):
        service.carry_forward_balances(SESSION, term_id)
        db.commit()
    service.carry_forward_balances(NEXT_SESSION, NEXT_T1)
    db.commit()

    balance = BalanceService(db).get_student_balance("S3", NEXT_SESSION, NEXT_T1)
    assert balance.billed == D("4000")
    assert balance.allocation.previous_debt == D("4000")


def test_promote_generates_and_carries(db, students, ss1_fees):
    add_fee(db, "SS1", "Tuition", 5000, term_id=T2)
    ChargeService(db).generate_charges(SESSION, T1)
    db.commit()
    pay(db, "S1", 6000)
    pay(db, "S1", 2000, "Books")
    pay(db, "S3", 4000)

    generated, carried = ChargeService(db).promote(SESSION, T2)
    db.commit()

    assert generated.written == 2
    balance = BalanceService(db).get_student_balance("S2", SESSION, T2)
    assert balance.allocation.current_fee == D("5000")
    assert balance.allocation.previous_debt == D("10000")
    assert carried.written == 2


def test_correct_charge(db, students, ss1_fees):
    ChargeService(db).generate_charges(SESSION, T1)
    db.commit()
    charge = db.query(StudentCharge).filter_by(student_id="S3").one()

    corrected = ChargeService(db).correct_charge(charge.id, D("3500"), corrected_by="bursar-1")
    db.commit()

    assert corrected.amount == D("3500")
    assert corrected.corrected_by == "bursar-1"
    with pytest.raises(ValidationError):
        ChargeService(db).correct_charge(charge.id, D("-1"), corrected_by="bursar-1")
    with pytest.raises(NotFoundError):
        ChargeService(db).correct_charge(uuid.uuid4(), D("1"), corrected_by="bursar-1")


def test_record_payment_validation(db, calendar, students):
    service = PaymentService(db)

    with pytest.raises(ValidationError):
        service.record_payment("S1", SESSION, T1, "Tuition", D("0"), "Cash", "bursar-1")
    with pytest.raises(ValidationError):
        service.record_payment("S1", SESSION, T1, "Tuition", D("-5"), "Cash", "bursar-1")
    with pytest.raises(ValidationError):
        service.record_payment("S1", SESSION, T1, "Tuition", D("100"), "Cheque", "bursar-1")
    with pytest.raises(NotFoundError):
        service.record_payment("NOPE", SESSION, T1, "Tuition", D("100"), "Cash", "bursar-1")
    with pytest.raises(NotFoundError):
        service.record_payment("S1", SESSION, "T9", "Tuition", D("100"), "Cash", "bursar-1")

    assert db.query(PaymentRecord).count() == 0


def test_payment_without_charge_is_accepted(db, calendar, students):
    pay(db, "S3", 700, purpose="Transport")

    balance = BalanceService(db).get_student_balance("S3", SESSION, T1)

    assert balance.status == "Pending"
    assert balance.purposes[0].status == "Overpaid"


def test_reversal_negates_and_cannot_repeat(db, students, ss1_fees):
    ChargeService(db).generate_charges(SESSION, T1)
    db.commit()
    payment = pay(db, "S3", 4000)

    reversal = PaymentService(db).reverse_payment(payment.id, recorded_by="bursar-2")
    db.commit()

    assert reversal.amount == D("-4000")
    assert reversal.reversal_of_id == payment.id
    assert reversal.reference == f"Reversal of {payment.id}"
    assert BalanceService(db).get_student_balance("S3", SESSION, T1).paid == 0

    with pytest.raises(DuplicateReversalError):
        PaymentService(db).reverse_payment(payment.id, recorded_by="bursar-2")
    with pytest.raises(DuplicateReversalError):
        PaymentService(db).reverse_payment(reversal.id, recorded_by="bursar-2")
    with pytest.raises(NotFoundError):
        PaymentService(db).reverse_payment(uuid.uuid4(), recorded_by="bursar-2")


def test_update_metadata_keeps_amount(db, calendar, students):
    payment = pay(db, "S1", 1000)

    updated = PaymentService(db).update_metadata(payment.id, reference="TRF-0091")
    db.commit()

    assert updated.reference == "TRF-0091"
    assert updated.amount == D("1000")


def test_student_history_is_chronological(db, students, ss1_fees):
    service = ChargeService(db)
    service.generate_charges(SESSION, T1)
    db.commit()
    service.carry_forward_balances(SESSION, T2)
    db.commit()
    pay(db, "S1", 100, term_id=T3)

    history = BalanceService(db).get_student_history("S1")

    assert [b.term_id for b in history] == [T1, T2, T3]
    assert history[2].status == "Pending"


def test_class_summary_sums_per_student(db, students, ss1_fees):
    ChargeService(db).generate_charges(SESSION, T1)
    db.commit()
    pay(db, "S1", 8000)
    pay(db, "S2", 3000)

    summary = BalanceService(db).get_class_summary("SS1", SESSION, T1)

    assert summary.student_count == 2
    assert summary.expected == D("18000")
    assert summary.collected == D("11000")
    assert summary.outstanding == D("7000")
    assert [o.student_id for o in summary.owing_students] == ["S2"]


def test_period_summary_and_fee_breakdown(db, students, ss1_fees):
    service = ChargeService(db)
    service.generate_charges(SESSION, T1)
    db.commit()

    summary = BalanceService(db).get_period_summary(SESSION, T1)
    assert summary.expected == D("22000")
    assert {c.class_level.lower() for c in summary.classes} == {"jss1", "ss1"}

    breakdown = BalanceService(db).get_fee_breakdown(SESSION, T1)
    assert [r.student_id for r in breakdown.rows] == ["S2", "S1", "S3"]
    assert breakdown.total == D("22000")
    assert breakdown.previous_debt == 0


def test_installment_plan_progress(db, students, ss1_fees):
    ChargeService(db).generate_charges(SESSION, T1)
    db.commit()
    service = InstallmentPlanService(db)

    plan = service.upsert_plan("S1", SESSION, T1, total_installments=4)
    db.commit()
    assert plan.expected_per_installment == D("2000")
    assert plan.installments_covered == 0

    pay(db, "S1", 4500)
    progress = service.get_progress("S1", SESSION, T1)
    assert progress.installments_covered == 2
    assert progress.remaining_installments == 2
    assert progress.remaining_amount == D("3500")

    with pytest.raises(ValidationError):
        service.upsert_plan("S1", SESSION, T1, total_installments=0)
    with pytest.raises(NotFoundError):
        service.get_progress("S2", SESSION, T1)


def test_fee_schedule_deactivation(db, calendar, students):
    service = FeeScheduleService(db)
    service.upsert_entry("SS1", SESSION, T1, "Tuition", D("5000"), updated_by="bursar-1")
    service.upsert_entry("SS1", SESSION, T1, "Tuition", D("1000"), stream="Science", updated_by="bursar-1")
    db.commit()

    entry = service.deactivate_entry("SS1", SESSION, T1, "Tuition", stream="Science", updated_by="bursar-1")
    db.commit()

    assert entry.is_active is False
    assert len(service.list_entries(session_id=SESSION, term_id=T1, active_only=True)) == 1
    assert len(service.list_entries(session_id=SESSION, term_id=T1, stream=None)) == 1
    with pytest.raises(NotFoundError):
        service.deactivate_entry("SS1", SESSION, T1, "Tuition", stream="Arts")
    with pytest.raises(ValidationError):
        service.upsert_entry("SS1", SESSION, T1, "Books", D("-1"))


def test_calendar_previous_period_crosses_sessions(db, calendar):
    service = CalendarService(db)

    previous = service.get_previous(NEXT_SESSION, NEXT_T1)

    assert previous.key == (SESSION, T3)
    assert service.resolve("2025/2026", "1st").term_id == NEXT_T1
    with pytest.raises(NotFoundError):
        service.get_previous(SESSION, "T9")


def test_fee_entry_identity_ignores_case(db, calendar, students):
    service = FeeScheduleService(db)
    service.upsert_entry("SS1", SESSION, T1, "Tuition", D("5000"), updated_by="bursar-1")
    db.commit()

    entry = service.upsert_entry(" ss1", SESSION, T1, "tuition ", D("5500"), updated_by="bursar-2")
    db.commit()

    assert (entry.class_level, entry.purpose) == ("SS1", "Tuition")
    assert entry.amount == D("5500")
    assert len(service.list_entries(session_id=SESSION, term_id=T1, active_only=True)) == 1

    ChargeService(db).generate_charges(SESSION, T1)
    db.commit()
    assert current_charges(db, "S1") == {"Tuition": D("5500")}

    service.deactivate_entry("ss1", SESSION, T1, "TUITION", updated_by="bursar-2")
    db.commit()
    assert service.list_entries(session_id=SESSION, term_id=T1, active_only=True) == []


def test_stream_entry_identity_ignores_case(db, calendar, students):
    service = FeeScheduleService(db)
    service.upsert_entry("SS1", SESSION, T1, "Tuition", D("1000"), stream="Science")
    service.upsert_entry("SS1", SESSION, T1, "Tuition", D("1200"), stream="SCIENCE ")
    db.commit()

    entries = service.list_entries(session_id=SESSION, term_id=T1, stream="science")

    assert len(entries) == 1
    assert entries[0].amount == D("1200")


def test_withdrawn_student_loses_stale_carried_rows(db, students, ss1_fees):
    service = ChargeService(db)
    service.generate_charges(SESSION, T1)
    db.commit()
    service.carry_forward_balances(SESSION, T2)
    db.commit()
    assert db.query(StudentCharge).filter_by(student_id="S2", term_id=T2).count() == 2

    db.get(SchoolStudent, "S2").is_active = False
    db.commit()
    result = service.carry_forward_balances(SESSION, T2)
    db.commit()

    assert db.query(StudentCharge).filter_by(student_id="S2", term_id=T2).count() == 0
    assert result.error_count == 0


def test_deactivated_entry_leaves_existing_charge_for_correction(db, calendar, students):
    fees = FeeScheduleService(db)
    fees.upsert_entry("JSS1", SESSION, T1, "Tuition", D("4000"))
    db.commit()
    ChargeService(db).generate_charges(SESSION, T1)
    db.commit()

    fees.deactivate_entry("JSS1", SESSION, T1, "Tuition")
    db.commit()
    ChargeService(db).generate_charges(SESSION, T1)
    db.commit()

    charge = db.query(StudentCharge).filter_by(student_id="S3").one()
    assert charge.amount == D("4000")

    ChargeService(db).correct_charge(charge.id, D("0"), corrected_by="bursar-1")
    db.commit()
    assert BalanceService(db).get_student_balance("S3", SESSION, T1).billed == 0
