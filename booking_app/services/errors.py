"""Booking error taxonomy and lightweight error logging for diagnostics."""

from __future__ import annotations

from datetime import datetime, UTC
from pathlib import Path
import traceback

from flask import current_app


class BookingError(Exception):
    """Base exception for booking operations.

    Every subclass carries a stable ``code`` for API clients, the HTTP status
    the web layer answers with, and a human-readable default message.
    """

    code = "booking_error"
    status_code = 400
    message = "The booking request could not be processed."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message

    def to_dict(self) -> dict[str, object]:
        return {"success": False, "code": self.code, "error": self.message}


class InputFormatError(BookingError):
    """Raised when a date or time value cannot be parsed."""

    code = "invalid_input"
    status_code = 400
    message = "Invalid date or time format."


class AvailabilityNotFound(BookingError):
    code = "availability_not_found"
    status_code = 404
    message = "Doctor availability not found."


class SlotNotAvailable(BookingError):
    code = "slot_not_available"
    status_code = 400
    message = "Appointment time slot not available."


class SlotConflict(BookingError):
    code = "slot_conflict"
    status_code = 409
    message = "Appointment has been already booked for the same date and time slot with the doctor."


class PatientNotFound(BookingError):
    code = "patient_not_found"
    status_code = 404
    message = "Wrong patient ID."


class DuplicateBooking(BookingError):
    code = "duplicate_booking"
    status_code = 409
    message = "Your appointment has been already booked with the same doctor on the same day."


class PersistenceError(BookingError):
    """Raised for unexpected storage failures; the message stays generic."""

    code = "persistence_error"
    status_code = 500
    message = "Failed to book appointment."


class AppointmentNotFound(BookingError):
    code = "appointment_not_found"
    status_code = 404
    message = "Appointment not found."


class DoctorsNotFound(BookingError):
    code = "doctors_not_found"
    status_code = 404
    message = "No doctors found with the specified speciality."


def record_exception(context: str, exc: BaseException) -> None:
    """Append exception details to data/logs/app_errors.log for offline inspection."""

    try:
        root = Path(current_app.config["DATA_ROOT"]) / "logs"
        root.mkdir(parents=True, exist_ok=True)
        log_path = root / "app_errors.log"
        with log_path.open("a", encoding="utf-8") as handle:
            handle.write(f"[{datetime.now(UTC).isoformat()}Z] {context}\n")
            handle.write("".join(traceback.format_exception(exc)))
            handle.write("\n")
    except Exception:
        # Never let logging failures break the request cycle.
        pass
