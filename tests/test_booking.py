import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from booking_app.models import BookingRequest
from booking_app.services.booking import book_appointment, validate_booking
from booking_app.services.errors import (
    AvailabilityNotFound,
    DuplicateBooking,
    InputFormatError,
    PatientNotFound,
    PersistenceError,
    SlotConflict,
    SlotNotAvailable,
)

from conftest import DAY

FIXED_NOW = datetime(2030, 1, 10, 12, 0, tzinfo=timezone.utc)


def _request(time_slot="09:30-10:00", *, doctor_id="doc-1", patient_id="pat-1", day=DAY):
    return BookingRequest.from_payload(
        {
            "doctor_id": doctor_id,
            "patient_id": patient_id,
            "appointment_date": day.isoformat(),
            "time_slot": time_slot,
        }
    )


def _book(store, request):
    return book_appointment(store, request, clock=lambda: FIXED_NOW)


def test_booking_creates_pending_appointment_and_invoice(app_ctx, memory_store):
    result = _book(memory_store, _request())

    appointment = result.appointment
    assert appointment.id is not None
    assert appointment.time_slot == "09:30-10:00"
    assert appointment.booking_status == "pending"
    assert appointment.payment_status == "pending"

    invoice = result.invoice
    assert invoice.appointment_id == appointment.id
    assert invoice.total_amount_cents == 20000 + 5000
    assert invoice.payment_method == "Pending"
    assert invoice.payment_status == "Pending"
    assert invoice.payment_due_date == FIXED_NOW + timedelta(days=1)

    assert memory_store.appointments == [appointment]
    assert memory_store.invoices == [invoice]


def test_booking_uses_configured_surcharge_and_due_days(app_ctx, memory_store):
    app_ctx.config.update(INVOICE_SURCHARGE_CENTS=1250, INVOICE_DUE_DAYS=3)
    result = _book(memory_store, _request())
    assert result.invoice.total_amount_cents == 21250
    assert result.invoice.payment_due_date == FIXED_NOW + timedelta(days=3)


def test_booking_result_serialises_amounts(app_ctx, memory_store):
    body = _book(memory_store, _request()).to_dict()
    assert body["appointment"]["appointment_date"] == DAY.isoformat()
    assert body["invoice"]["total_amount"] == "250.00"
    assert body["invoice"]["payment_due_date"].startswith("2030-01-11T12:00")


def test_slot_normalised_from_padded_input(app_ctx, memory_store):
    result = _book(memory_store, _request(" 09:00 - 09:30 "))
    assert result.appointment.time_slot == "09:00-09:30"


def test_slot_outside_division_is_rejected(app_ctx, memory_store):
    with pytest.raises(SlotNotAvailable):
        _book(memory_store, _request("09:15-09:45"))
    assert memory_store.appointments == []


def test_slot_beyond_window_is_rejected(app_ctx, memory_store):
    with pytest.raises(SlotNotAvailable):
        _book(memory_store, _request("11:00-11:30"))


@pytest.mark.parametrize("time_slot", ["10:00-09:00", "10:00-10:00", "9 to 10", "09:00-09:30-10:00"])
def test_unusable_slot_string_is_not_available(app_ctx, memory_store, time_slot):
    with pytest.raises(SlotNotAvailable):
        _book(memory_store, _request(time_slot))
    assert memory_store.appointments == []


def test_availability_checked_before_slot_format(app_ctx, memory_store):
    with pytest.raises(AvailabilityNotFound):
        _book(memory_store, _request("junk", day=DAY + timedelta(days=1)))


def test_no_availability(app_ctx, memory_store):
    with pytest.raises(AvailabilityNotFound):
        _book(memory_store, _request(day=DAY + timedelta(days=1)))


def test_paid_appointment_blocks_the_slot(app_ctx, memory_store):
    memory_store.add_patient("pat-2")
    memory_store.add_appointment("09:30-10:00", patient_id="pat-2", payment_status="paid")
    with pytest.raises(SlotConflict):
        _book(memory_store, _request())
    assert len(memory_store.appointments) == 1


def test_pending_appointment_does_not_block_the_slot(app_ctx, memory_store):
    memory_store.add_patient("pat-2")
    memory_store.add_appointment("09:30-10:00", patient_id="pat-2", payment_status="pending")
    result = _book(memory_store, _request())
    assert result.appointment.patient_id == "pat-1"
    assert len(memory_store.appointments) == 2


def test_unknown_patient_persists_nothing(app_ctx, memory_store):
    with pytest.raises(PatientNotFound):
        _book(memory_store, _request(patient_id="ghost"))
    assert memory_store.appointments == []
    assert memory_store.invoices == []


def test_patient_already_paid_with_doctor_that_day(app_ctx, memory_store):
    memory_store.add_appointment("10:30-11:00", payment_status="paid")
    with pytest.raises(DuplicateBooking):
        _book(memory_store, _request())


def test_patient_paid_with_another_doctor_is_not_a_duplicate(app_ctx, memory_store):
    memory_store.add_doctor("doc-2")
    memory_store.add_appointment("09:30-10:00", doctor_id="doc-2", payment_status="paid")
    assert _book(memory_store, _request()).appointment.doctor_id == "doc-1"


def test_checks_run_in_order(app_ctx, memory_store):
    # Unusable slot wins over an unknown patient.
    with pytest.raises(SlotNotAvailable):
        _book(memory_store, _request("08:00-08:30", patient_id="ghost"))
    # Paid conflict wins over the duplicate check.
    memory_store.add_appointment("09:30-10:00", payment_status="paid")
    with pytest.raises(SlotConflict):
        validate_booking(memory_store, _request())


@pytest.mark.parametrize("method", ["find_appointment", "find_patient_appointments", "find_patient"])
def test_storage_error_during_checks_blocks_booking(app_ctx, memory_store, method):
    memory_store.fail_on[method] = sqlite3.OperationalError("database is locked")
    with pytest.raises(PersistenceError) as excinfo:
        _book(memory_store, _request())
    assert excinfo.value.status_code == 500
    assert "locked" not in excinfo.value.message
    assert memory_store.appointments == []


def test_invoice_failure_rolls_back_appointment(app_ctx, memory_store):
    memory_store.fail_on["create_invoice"] = sqlite3.IntegrityError("boom")
    with pytest.raises(PersistenceError):
        _book(memory_store, _request())
    assert memory_store.appointments == []
    assert memory_store.invoices == []


def test_missing_doctor_record_fails_the_booking(app_ctx, memory_store):
    memory_store.doctors.clear()
    with pytest.raises(PersistenceError) as excinfo:
        _book(memory_store, _request())
    assert excinfo.value.message == "Failed to fetch doctor's consultancy charge."
    assert memory_store.appointments == []


def test_storage_failure_is_recorded(app_ctx, memory_store):
    memory_store.fail_on["create_appointment"] = sqlite3.OperationalError("disk full")
    with pytest.raises(PersistenceError):
        _book(memory_store, _request())
    log_path = app_ctx.config["DATA_ROOT"] + "/logs/app_errors.log"
    with open(log_path, encoding="utf-8") as handle:
        assert "booking.create_appointment" in handle.read()


@pytest.mark.parametrize(
    "payload",
    [
        {"patient_id": "pat-1", "appointment_date": "2030-01-15", "time_slot": "09:00-09:30"},
        {"doctor_id": "doc-1", "patient_id": "pat-1", "appointment_date": "15/01/2030", "time_slot": "09:00-09:30"},
        {"doctor_id": "doc-1", "patient_id": "pat-1", "appointment_date": "2030-01-15"},
        {"doctor_id": "doc-1", "patient_id": "pat-1", "appointment_date": "2030-01-15", "time_slot": 930},
    ],
)
def test_malformed_request_is_rejected(payload):
    with pytest.raises(InputFormatError):
        BookingRequest.from_payload(payload)


def test_availability_lookup_failure_is_recorded_as_validation(app_ctx, memory_store):
    memory_store.fail_on["find_availability"] = sqlite3.OperationalError("disk I/O error")
    with pytest.raises(PersistenceError):
        _book(memory_store, _request())
    log_path = app_ctx.config["DATA_ROOT"] + "/logs/app_errors.log"
    with open(log_path, encoding="utf-8") as handle:
        assert "booking.validate" in handle.read()
