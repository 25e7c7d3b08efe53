"""Persistence port for the booking services and its SQLite adapter."""

from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Callable, ContextManager, Iterator, Protocol

from booking_app.models import (
    DATE_FMT,
    PAYMENT_PAID,
    PAYMENT_STATUSES,
    Appointment,
    AvailabilityWindow,
    Doctor,
    Invoice,
    Patient,
)
from booking_app.services.database import db, immediate_transaction
from booking_app.services.errors import AppointmentNotFound, DuplicateBooking, InputFormatError, SlotConflict


class BookingStore(Protocol):
    """Everything the booking services need from storage."""

    def transaction(self) -> ContextManager["BookingStore"]: ...

    def find_availability(self, doctor_id: str, day: date) -> AvailabilityWindow | None: ...

    def find_appointments(self, doctor_id: str, day: date) -> list[Appointment]: ...

    def find_patient_appointments(
        self, patient_id: str, doctor_id: str, day: date, payment_status: str
    ) -> list[Appointment]: ...

    def find_appointment(
        self, doctor_id: str, day: date, time_slot: str, payment_status: str
    ) -> Appointment | None: ...

    def find_patient(self, patient_id: str) -> Patient | None: ...

    def find_doctor(self, doctor_id: str) -> Doctor | None: ...

    def find_doctors_by_specialization(self, specialization: str) -> list[Doctor]: ...

    def create_appointment(self, appointment: Appointment) -> Appointment: ...

    def create_invoice(self, invoice: Invoice) -> Invoice: ...

    def set_payment_status(self, appointment_id: str, status: str) -> Appointment: ...


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def _day(value: date) -> str:
    return value.strftime(DATE_FMT)


def _doctor(row: sqlite3.Row) -> Doctor:
    return Doctor(
        id=row["id"],
        name=row["name"],
        specialization=row["specialization"],
        consultancy_charge_cents=int(row["consultancy_charge_cents"] or 0),
    )


def _appointment(row: sqlite3.Row) -> Appointment:
    return Appointment(
        id=row["id"],
        doctor_id=row["doctor_id"],
        patient_id=row["patient_id"],
        appointment_date=datetime.strptime(row["appointment_date"], DATE_FMT).date(),
        time_slot=row["time_slot"],
        booking_status=row["booking_status"],
        payment_status=row["payment_status"],
        created_at=datetime.fromisoformat(row["created_at"]) if row["created_at"] else None,
    )


class SqliteBookingStore:
    """Store backed by the application's SQLite database.

    Calls made inside :meth:`transaction` share one connection that holds
    the write lock (``BEGIN IMMEDIATE``) until commit, so validation reads and
    the appointment/invoice writes of a booking cannot interleave with another
    writer. Outside a transaction every call uses a short-lived connection.
    """

    def __init__(self, connect: Callable[[], sqlite3.Connection] = db) -> None:
        self._connect = connect
        self._conn: sqlite3.Connection | None = None

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        if self._conn is not None:
            yield self._conn
            return
        conn = self._connect()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator["SqliteBookingStore"]:
        if self._conn is not None:
            yield self
            return
        conn = self._connect()
        self._conn = conn
        try:
            with immediate_transaction(conn):
                yield self
        finally:
            self._conn = None
            conn.close()

    # =========================================================================
    # Lookups
    # =========================================================================

    def find_availability(self, doctor_id: str, day: date) -> AvailabilityWindow | None:
        with self._connection() as conn:
            row = conn.execute(
                """
                SELECT doctor_id, date, available_time
                FROM doctor_availability
                WHERE doctor_id = ? AND date = ?
                LIMIT 1
                """,
                (doctor_id, _day(day)),
            ).fetchone()
        if row is None:
            return None
        return AvailabilityWindow(
            doctor_id=row["doctor_id"],
            date=datetime.strptime(row["date"], DATE_FMT).date(),
            available_time=row["available_time"],
        )

    def find_appointments(self, doctor_id: str, day: date) -> list[Appointment]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM appointments
                WHERE doctor_id = ? AND appointment_date = ?
                ORDER BY created_at, rowid
                """,
                (doctor_id, _day(day)),
            ).fetchall()
        return [_appointment(row) for row in rows]

    def find_patient_appointments(
        self, patient_id: str, doctor_id: str, day: date, payment_status: str
    ) -> list[Appointment]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM appointments
                WHERE patient_id = ?
                  AND doctor_id = ?
                  AND appointment_date = ?
                  AND payment_status = ?
                ORDER BY created_at, rowid
                """,
                (patient_id, doctor_id, _day(day), payment_status),
            ).fetchall()
        return [_appointment(row) for row in rows]

    def find_appointment(
        self, doctor_id: str, day: date, time_slot: str, payment_status: str
    ) -> Appointment | None:
        with self._connection() as conn:
            row = conn.execute(
                """
                SELECT * FROM appointments
                WHERE doctor_id = ?
                  AND appointment_date = ?
                  AND time_slot = ?
                  AND payment_status = ?
                LIMIT 1
                """,
                (doctor_id, _day(day), time_slot, payment_status),
            ).fetchone()
        return _appointment(row) if row else None

    def find_patient(self, patient_id: str) -> Patient | None:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT id, full_name FROM patients WHERE id = ?",
                (patient_id,),
            ).fetchone()
        return Patient(id=row["id"], full_name=row["full_name"]) if row else None

    def find_doctor(self, doctor_id: str) -> Doctor | None:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT id, name, specialization, consultancy_charge_cents FROM doctors WHERE id = ?",
                (doctor_id,),
            ).fetchone()
        return _doctor(row) if row else None

    def find_doctors_by_specialization(self, specialization: str) -> list[Doctor]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT id, name, specialization, consultancy_charge_cents
                FROM doctors
                WHERE specialization = ? COLLATE NOCASE
                ORDER BY name COLLATE NOCASE, id
                """,
                (specialization.strip(),),
            ).fetchall()
        return [_doctor(row) for row in rows]

    # =========================================================================
    # Writes
    # =========================================================================

    def create_appointment(self, appointment: Appointment) -> Appointment:
        appt_id = appointment.id or str(uuid.uuid4())
        created_at = appointment.created_at or _now()
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO appointments(
                    id, doctor_id, patient_id, appointment_date, time_slot,
                    booking_status, payment_status, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    appt_id,
                    appointment.doctor_id,
                    appointment.patient_id,
                    _day(appointment.appointment_date),
                    appointment.time_slot,
                    appointment.booking_status,
                    appointment.payment_status,
                    created_at.isoformat(),
                    created_at.isoformat(),
                ),
            )
            if self._conn is None:
                conn.commit()
        appointment.id = appt_id
        appointment.created_at = created_at
        return appointment

    def create_invoice(self, invoice: Invoice) -> Invoice:
        invoice_id = invoice.id or str(uuid.uuid4())
        created_at = invoice.created_at or _now()
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO invoices(
                    id, doctor_id, patient_id, appointment_id, total_amount_cents,
                    payment_method, payment_status, payment_due_date, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    invoice_id,
                    invoice.doctor_id,
                    invoice.patient_id,
                    invoice.appointment_id,
                    invoice.total_amount_cents,
                    invoice.payment_method,
                    invoice.payment_status,
                    invoice.payment_due_date.isoformat(),
                    created_at.isoformat(),
                ),
            )
            if self._conn is None:
                conn.commit()
        invoice.id = invoice_id
        invoice.created_at = created_at
        return invoice

    def set_payment_status(self, appointment_id: str, status: str) -> Appointment:
        """Record the outcome reported by the payment collaborator.

        At most one paid appointment may hold a doctor/date/slot; the partial
        unique index rejects a second one and that surfaces as
        :class:`SlotConflict`. A patient may also hold only one paid
        appointment per doctor and day, otherwise :class:`DuplicateBooking`.
        """

        if status not in PAYMENT_STATUSES:
            raise InputFormatError(f"Unknown payment status: {status}")
        with self.transaction(), self._connection() as conn:
            row = conn.execute("SELECT * FROM appointments WHERE id = ?", (appointment_id,)).fetchone()
            if row is None:
                raise AppointmentNotFound()
            current = _appointment(row)
            if status == PAYMENT_PAID:
                others = [
                    appt
                    for appt in self.find_patient_appointments(
                        current.patient_id, current.doctor_id, current.appointment_date, PAYMENT_PAID
                    )
                    if appt.id != current.id
                ]
                if others:
                    raise DuplicateBooking()
            try:
                conn.execute(
                    "UPDATE appointments SET payment_status = ?, updated_at = ? WHERE id = ?",
                    (status, _now().isoformat(), appointment_id),
                )
            except sqlite3.IntegrityError as exc:
                raise SlotConflict() from exc
            conn.execute(
                "UPDATE invoices SET payment_status = ? WHERE appointment_id = ?",
                (status.capitalize(), appointment_id),
            )
            updated = conn.execute("SELECT * FROM appointments WHERE id = ?", (appointment_id,)).fetchone()
        return _appointment(updated)
