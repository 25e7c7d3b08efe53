"""Booking records exchanged between the services and the store."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Mapping

from booking_app.services.errors import InputFormatError
from booking_app.services.payments import money

DATE_FMT = "%Y-%m-%d"

BOOKING_PENDING = "pending"
PAYMENT_PENDING = "pending"
PAYMENT_PAID = "paid"
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")
INVOICE_PENDING = "Pending"


def parse_day(value: Any) -> date:
    """Parse ``YYYY-MM-DD``; raises :class:`InputFormatError` otherwise."""

    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise InputFormatError("Invalid date format, expected YYYY-MM-DD.")
    try:
        return datetime.strptime(value.strip(), DATE_FMT).date()
    except ValueError as exc:
        raise InputFormatError("Invalid date format, expected YYYY-MM-DD.") from exc


@dataclass
class AvailabilityWindow:
    doctor_id: str
    date: date
    available_time: str


@dataclass
class Doctor:
    id: str
    name: str
    consultancy_charge_cents: int
    specialization: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "specialization": self.specialization,
            "consultancy_charge": money(self.consultancy_charge_cents),
        }


@dataclass
class Patient:
    id: str
    full_name: str


@dataclass
class BookingRequest:
    """Shape of an incoming booking; the slot string is checked by the validator."""

    doctor_id: str
    patient_id: str
    appointment_date: date
    time_slot: str

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "BookingRequest":
        doctor_id = str(payload.get("doctor_id") or "").strip()
        patient_id = str(payload.get("patient_id") or "").strip()
        if not doctor_id or not patient_id:
            raise InputFormatError("doctor_id and patient_id are required.")
        day = parse_day(payload.get("appointment_date"))
        slot = payload.get("time_slot")
        if not isinstance(slot, str):
            raise InputFormatError("time_slot must be a string in HH:MM-HH:MM form.")
        return cls(doctor_id=doctor_id, patient_id=patient_id, appointment_date=day, time_slot=slot)


@dataclass
class Appointment:
    doctor_id: str
    patient_id: str
    appointment_date: date
    time_slot: str
    booking_status: str = BOOKING_PENDING
    payment_status: str = PAYMENT_PENDING
    id: str | None = None
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "doctor_id": self.doctor_id,
            "patient_id": self.patient_id,
            "appointment_date": self.appointment_date.strftime(DATE_FMT),
            "time_slot": self.time_slot,
            "booking_status": self.booking_status,
            "payment_status": self.payment_status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class Invoice:
    doctor_id: str
    patient_id: str
    appointment_id: str
    total_amount_cents: int
    payment_due_date: datetime
    payment_method: str = INVOICE_PENDING
    payment_status: str = INVOICE_PENDING
    id: str | None = None
    created_at: datetime | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "doctor_id": self.doctor_id,
            "patient_id": self.patient_id,
            "appointment_id": self.appointment_id,
            "total_amount": money(self.total_amount_cents),
            "total_amount_cents": self.total_amount_cents,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "payment_due_date": self.payment_due_date.isoformat(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
