"""Available slot resolution for a doctor's day."""

from __future__ import annotations

import sqlite3
from datetime import date

from flask import current_app

from booking_app.services.errors import AvailabilityNotFound, PersistenceError, record_exception
from booking_app.services.slots import DEFAULT_SLOT_MINUTES, TimeRange, parse_time_range, slots_for_window
from booking_app.services.store import BookingStore


def slot_minutes() -> int:
    return int(current_app.config.get("APPOINTMENT_SLOT_MINUTES", DEFAULT_SLOT_MINUTES))


def candidate_slots(store: BookingStore, doctor_id: str, day: date, interval_minutes: int) -> list[TimeRange]:
    """Every slot the doctor's window for ``day`` divides into."""

    window = store.find_availability(doctor_id, day)
    if window is None:
        raise AvailabilityNotFound()
    slots = slots_for_window(window.available_time, interval_minutes)
    if not slots:
        current_app.logger.warning(
            "Availability for doctor %s on %s is unusable: %r", doctor_id, day, window.available_time
        )
    return slots


def available_slots(
    store: BookingStore,
    doctor_id: str,
    day: date,
    interval_minutes: int | None = None,
) -> list[str]:
    """Slots for ``day`` that no appointment occupies, in generation order.

    Appointments of any status occupy their slot here; only the booking
    validator distinguishes paid from pending.
    """

    interval = interval_minutes or slot_minutes()
    candidates = candidate_slots(store, doctor_id, day, interval)
    try:
        bookings = store.find_appointments(doctor_id, day)
    except sqlite3.Error as exc:
        record_exception("availability.find_appointments", exc)
        current_app.logger.error("Failed to retrieve bookings for doctor %s on %s: %s", doctor_id, day, exc)
        raise PersistenceError("Failed to retrieve bookings.") from exc

    booked: set[TimeRange | str] = set()
    for booking in bookings:
        parsed = parse_time_range(booking.time_slot)
        booked.add(parsed if parsed is not None else booking.time_slot)
    return [slot.label for slot in candidates if slot not in booked]
