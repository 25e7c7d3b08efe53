"""Invoice computation for newly booked appointments."""

from __future__ import annotations

from datetime import datetime, timedelta

from booking_app.models import INVOICE_PENDING, Appointment, Doctor, Invoice
from booking_app.services.payments import cents_guard

DEFAULT_SURCHARGE_CENTS = 50 * 100
DEFAULT_DUE_DAYS = 1


def invoice_total_cents(consultancy_charge_cents: int, surcharge_cents: int = DEFAULT_SURCHARGE_CENTS) -> int:
    """Consultancy charge plus the flat booking surcharge."""

    total = int(consultancy_charge_cents or 0) + int(surcharge_cents)
    return cents_guard(total, "Invoice total")


def payment_due_date(issued_at: datetime, days: int = DEFAULT_DUE_DAYS) -> datetime:
    return issued_at + timedelta(days=days)


def build_invoice(
    appointment: Appointment,
    doctor: Doctor,
    *,
    issued_at: datetime,
    surcharge_cents: int = DEFAULT_SURCHARGE_CENTS,
    due_days: int = DEFAULT_DUE_DAYS,
) -> Invoice:
    if appointment.id is None:
        raise ValueError("appointment must be persisted before invoicing")
    return Invoice(
        doctor_id=appointment.doctor_id,
        patient_id=appointment.patient_id,
        appointment_id=appointment.id,
        total_amount_cents=invoice_total_cents(doctor.consultancy_charge_cents, surcharge_cents),
        payment_method=INVOICE_PENDING,
        payment_status=INVOICE_PENDING,
        payment_due_date=payment_due_date(issued_at, due_days),
        created_at=issued_at,
    )
