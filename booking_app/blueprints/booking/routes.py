from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_wtf.csrf import generate_csrf

from booking_app.extensions import limiter
from booking_app.models import BookingRequest, parse_day
from booking_app.services.availability import available_slots
from booking_app.services.booking import book_appointment
from booking_app.services.doctors import doctors_by_specialization
from booking_app.services.errors import BookingError, InputFormatError, record_exception
from booking_app.services.store import BookingStore, SqliteBookingStore

bp = Blueprint("booking", __name__)


def _store() -> BookingStore:
    factory = current_app.config.get("BOOKING_STORE_FACTORY") or SqliteBookingStore
    return factory()


def _booking_rate_limit() -> str:
    return current_app.config.get("BOOKING_RATE_LIMIT", "60 per minute")


def _error(exc: BookingError):
    return jsonify(exc.to_dict()), exc.status_code


@bp.route("/csrf-token", methods=["GET"])
def csrf_token():
    return jsonify({"csrf_token": generate_csrf()})


@bp.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok"})


@bp.route("/doctors/specialization/<specialization>", methods=["GET"], endpoint="doctors_by_specialization")
def list_doctors_by_specialization(specialization: str):
    try:
        doctors = doctors_by_specialization(_store(), specialization)
    except BookingError as exc:
        return _error(exc)

    return jsonify(
        {
            "status": "success",
            "message": "Doctors details list fetched successfully",
            "doctors": [doctor.to_dict() for doctor in doctors],
        }
    )


@bp.route("/doctors/<doctor_id>/slots", methods=["GET"], endpoint="available_slots")
def available_time_slots(doctor_id: str):
    """List the free slots of a doctor's day (``?date=YYYY-MM-DD``)."""

    date_str = (request.args.get("date") or "").strip()
    try:
        day = parse_day(date_str)
        slots = available_slots(_store(), doctor_id, day)
    except BookingError as exc:
        return _error(exc)
    except Exception as exc:  # pragma: no cover
        record_exception("booking.available_slots", exc)
        return jsonify({"success": False, "error": "Internal server error"}), 500

    return jsonify({"date": date_str, "available_time_slots": slots})


@bp.route("/appointments", methods=["POST"], endpoint="book")
@limiter.limit(_booking_rate_limit)
def book():
    """Book a slot and issue its invoice."""

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return _error(InputFormatError("Request body must be a JSON object."))

    try:
        booking_request = BookingRequest.from_payload(payload)
        result = book_appointment(_store(), booking_request)
    except BookingError as exc:
        return _error(exc)
    except Exception as exc:  # pragma: no cover
        record_exception("booking.book", exc)
        return jsonify({"success": False, "error": "Internal server error"}), 500

    body = {
        "status": "success",
        "message": "Appointment booked successfully",
        **result.to_dict(),
    }
    return jsonify(body), 201
