"""Read-only doctor lookups for patients choosing whom to book."""

from __future__ import annotations

import sqlite3

from flask import current_app

from booking_app.models import Doctor
from booking_app.services.errors import DoctorsNotFound, InputFormatError, PersistenceError, record_exception
from booking_app.services.store import BookingStore


def doctors_by_specialization(store: BookingStore, specialization: str) -> list[Doctor]:
    """Doctors whose specialization matches ``specialization`` (case-insensitive)."""

    name = (specialization or "").strip()
    if not name:
        raise InputFormatError("Specialization is required.")
    try:
        doctors = store.find_doctors_by_specialization(name)
    except sqlite3.Error as exc:
        record_exception("doctors.by_specialization", exc)
        current_app.logger.error("Failed to list doctors for %r: %s", name, exc)
        raise PersistenceError("Couldn't get doctors details.") from exc
    if not doctors:
        raise DoctorsNotFound()
    return doctors
