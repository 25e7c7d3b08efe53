"""Booking validation and the appointment + invoice booking workflow."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, NoReturn

from flask import current_app

from booking_app.models import (
    BOOKING_PENDING,
    PAYMENT_PAID,
    PAYMENT_PENDING,
    Appointment,
    BookingRequest,
    Invoice,
)
from booking_app.services.availability import candidate_slots, slot_minutes
from booking_app.services.errors import (
    BookingError,
    DuplicateBooking,
    PatientNotFound,
    PersistenceError,
    SlotConflict,
    SlotNotAvailable,
    record_exception,
)
from booking_app.services.invoices import DEFAULT_DUE_DAYS, DEFAULT_SURCHARGE_CENTS, build_invoice
from booking_app.services.slots import TimeRange, parse_time_range
from booking_app.services.store import BookingStore


@dataclass
class BookingResult:
    appointment: Appointment
    invoice: Invoice

    def to_dict(self) -> dict[str, Any]:
        return {"appointment": self.appointment.to_dict(), "invoice": self.invoice.to_dict()}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def _storage_failure(context: str, exc: Exception, message: str | None = None) -> NoReturn:
    record_exception(context, exc)
    current_app.logger.error("%s failed: %s", context, exc)
    raise PersistenceError(message) from exc


def validate_booking(
    store: BookingStore, request: BookingRequest, interval_minutes: int | None = None
) -> TimeRange:
    """Run the booking checks in order, raising the first failure.

    1. the doctor has availability that day
    2. the requested slot parses and is one of the slots that availability
       divides into
    3. no paid appointment already holds that slot
    4. the patient exists
    5. the patient has no paid appointment with this doctor that day

    Storage errors in steps 3 and 5 block the booking as
    :class:`PersistenceError` instead of letting it through. Returns the
    matched slot.
    """

    interval = interval_minutes or slot_minutes()
    day = request.appointment_date

    slots = candidate_slots(store, request.doctor_id, day, interval)
    slot = parse_time_range(request.time_slot)
    if slot is None or slot not in slots:
        raise SlotNotAvailable()

    try:
        conflict = store.find_appointment(request.doctor_id, day, slot.label, PAYMENT_PAID)
    except sqlite3.Error as exc:
        _storage_failure("booking.check_conflict", exc)
    if conflict is not None:
        raise SlotConflict()

    try:
        patient = store.find_patient(request.patient_id)
    except sqlite3.Error as exc:
        _storage_failure("booking.find_patient", exc)
    if patient is None:
        raise PatientNotFound()

    try:
        duplicates = store.find_patient_appointments(request.patient_id, request.doctor_id, day, PAYMENT_PAID)
    except sqlite3.Error as exc:
        _storage_failure("booking.check_duplicate", exc)
    if duplicates:
        raise DuplicateBooking()
    return slot


def book_appointment(
    store: BookingStore,
    request: BookingRequest,
    *,
    interval_minutes: int | None = None,
    surcharge_cents: int | None = None,
    due_days: int | None = None,
    clock: Callable[[], datetime] = _utcnow,
) -> BookingResult:
    """Validate ``request`` and persist its appointment and invoice together.

    Validation and both writes share one store transaction: a failure at any
    step leaves nothing behind.
    """

    config = current_app.config
    if surcharge_cents is None:
        surcharge_cents = int(config.get("INVOICE_SURCHARGE_CENTS", DEFAULT_SURCHARGE_CENTS))
    if due_days is None:
        due_days = int(config.get("INVOICE_DUE_DAYS", DEFAULT_DUE_DAYS))

    stage = "booking.begin"
    try:
        with store.transaction():
            stage = "booking.validate"
            slot = validate_booking(store, request, interval_minutes)

            stage = "booking.create_appointment"
            now = clock()
            appointment = store.create_appointment(
                Appointment(
                    doctor_id=request.doctor_id,
                    patient_id=request.patient_id,
                    appointment_date=request.appointment_date,
                    time_slot=slot.label,
                    booking_status=BOOKING_PENDING,
                    payment_status=PAYMENT_PENDING,
                    created_at=now,
                )
            )

            stage = "booking.find_doctor"
            doctor = store.find_doctor(request.doctor_id)
            if doctor is None:
                raise PersistenceError("Failed to fetch doctor's consultancy charge.")

            stage = "booking.create_invoice"
            invoice = store.create_invoice(
                build_invoice(
                    appointment,
                    doctor,
                    issued_at=now,
                    surcharge_cents=surcharge_cents,
                    due_days=due_days,
                )
            )
    except BookingError:
        raise
    except sqlite3.Error as exc:
        _storage_failure(stage, exc)

    current_app.logger.info(
        "Booked appointment %s for patient %s with doctor %s on %s %s",
        appointment.id,
        appointment.patient_id,
        appointment.doctor_id,
        appointment.appointment_date,
        appointment.time_slot,
    )
    return BookingResult(appointment=appointment, invoice=invoice)
