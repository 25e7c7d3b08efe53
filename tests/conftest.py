import os
import pathlib
import shutil
import sys
from contextlib import contextmanager
from datetime import date

import pytest

root = pathlib.Path(__file__).resolve().parents[1]
if str(root) not in sys.path:
    sys.path.insert(0, str(root))

from booking_app import create_app
from booking_app.models import Appointment, AvailabilityWindow, Doctor, Patient
from booking_app.services.database import db as raw_db
from booking_app.services.errors import AppointmentNotFound, DuplicateBooking, SlotConflict

DAY = date(2030, 1, 15)


@pytest.fixture(scope="session")
def _template_db(tmp_path_factory):
    """Build a fully-migrated DB once per test session.

    Every function-scoped ``app`` fixture copies this file instead of
    running the Alembic migrations from scratch.
    """
    db_path = tmp_path_factory.mktemp("template") / "app.db"
    old_db = os.environ.get("BOOKING_DB_PATH")
    old_key = os.environ.get("BOOKING_SECRET_KEY")
    os.environ["BOOKING_DB_PATH"] = str(db_path)
    os.environ["BOOKING_SECRET_KEY"] = "test-secret"
    try:
        _app = create_app()
        with _app.app_context():
            pass
    finally:
        if old_db is None:
            os.environ.pop("BOOKING_DB_PATH", None)
        else:
            os.environ["BOOKING_DB_PATH"] = old_db
        if old_key is None:
            os.environ.pop("BOOKING_SECRET_KEY", None)
        else:
            os.environ["BOOKING_SECRET_KEY"] = old_key
    return db_path


@pytest.fixture
def app(tmp_path, monkeypatch, _template_db):
    db_path = tmp_path / "app.db"
    shutil.copy2(_template_db, db_path)
    monkeypatch.setenv("BOOKING_DB_PATH", str(db_path))
    monkeypatch.setenv("BOOKING_SECRET_KEY", "test-secret")
    monkeypatch.setenv("BOOKING_AUTO_MIGRATE", "0")  # Already migrated
    app = create_app()
    app.config.update(TESTING=True, WTF_CSRF_ENABLED=True)
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def csrf_headers(client):
    token = client.get("/csrf-token").get_json()["csrf_token"]
    return {"X-CSRFToken": token}


@pytest.fixture
def seed(app):
    """Insert a doctor, a patient and (optionally) the doctor's availability."""

    def _seed(
        doctor_id: str = "doc-1",
        patient_id: str = "pat-1",
        day: date = DAY,
        hours: str | None = "09:00-11:00",
        charge_cents: int = 20000,
        specialization: str = "General",
    ) -> None:
        conn = raw_db()
        try:
            conn.execute(
                "INSERT OR IGNORE INTO doctors(id, name, specialization, consultancy_charge_cents) VALUES (?, ?, ?, ?)",
                (doctor_id, f"Dr. {doctor_id}", specialization, charge_cents),
            )
            conn.execute(
                "INSERT OR IGNORE INTO patients(id, full_name) VALUES (?, ?)",
                (patient_id, f"Patient {patient_id}"),
            )
            if hours is not None:
                conn.execute(
                    "INSERT OR IGNORE INTO doctor_availability(doctor_id, date, available_time) VALUES (?, ?, ?)",
                    (doctor_id, day.isoformat(), hours),
                )
            conn.commit()
        finally:
            conn.close()

    return _seed


class InMemoryBookingStore:
    """Dict-backed stand-in for the SQLite store.

    ``fail_on`` maps a method name to the exception that method should raise.
    """

    def __init__(self):
        self.doctors: dict[str, Doctor] = {}
        self.patients: dict[str, Patient] = {}
        self.windows: dict[tuple[str, date], AvailabilityWindow] = {}
        self.appointments: list[Appointment] = []
        self.invoices: list = []
        self.fail_on: dict[str, Exception] = {}
        self._counter = 0

    def _check(self, name: str) -> None:
        exc = self.fail_on.get(name)
        if exc is not None:
            raise exc

    def add_doctor(self, doctor_id="doc-1", charge_cents=20000, specialization="General"):
        self.doctors[doctor_id] = Doctor(
            id=doctor_id,
            name=f"Dr. {doctor_id}",
            consultancy_charge_cents=charge_cents,
            specialization=specialization,
        )

    def add_patient(self, patient_id="pat-1"):
        self.patients[patient_id] = Patient(id=patient_id, full_name=f"Patient {patient_id}")

    def add_window(self, doctor_id="doc-1", day=DAY, hours="09:00-11:00"):
        self.windows[(doctor_id, day)] = AvailabilityWindow(doctor_id=doctor_id, date=day, available_time=hours)

    def add_appointment(self, time_slot, *, doctor_id="doc-1", patient_id="pat-1", day=DAY, payment_status="pending"):
        appt = Appointment(
            doctor_id=doctor_id,
            patient_id=patient_id,
            appointment_date=day,
            time_slot=time_slot,
            payment_status=payment_status,
        )
        return self.create_appointment(appt)

    @contextmanager
    def transaction(self):
        snapshot = (list(self.appointments), list(self.invoices))
        try:
            yield self
        except Exception:
            self.appointments, self.invoices = snapshot
            raise

    def find_availability(self, doctor_id, day):
        self._check("find_availability")
        return self.windows.get((doctor_id, day))

    def find_appointments(self, doctor_id, day):
        self._check("find_appointments")
        return [a for a in self.appointments if a.doctor_id == doctor_id and a.appointment_date == day]

    def find_patient_appointments(self, patient_id, doctor_id, day, payment_status):
        self._check("find_patient_appointments")
        return [
            a
            for a in self.appointments
            if a.patient_id == patient_id
            and a.doctor_id == doctor_id
            and a.appointment_date == day
            and a.payment_status == payment_status
        ]

    def find_appointment(self, doctor_id, day, time_slot, payment_status):
        self._check("find_appointment")
        for a in self.appointments:
            if (a.doctor_id, a.appointment_date, a.time_slot, a.payment_status) == (
                doctor_id,
                day,
                time_slot,
                payment_status,
            ):
                return a
        return None

    def find_patient(self, patient_id):
        self._check("find_patient")
        return self.patients.get(patient_id)

    def find_doctor(self, doctor_id):
        self._check("find_doctor")
        return self.doctors.get(doctor_id)

    def find_doctors_by_specialization(self, specialization):
        self._check("find_doctors_by_specialization")
        wanted = specialization.strip().lower()
        return sorted(
            (d for d in self.doctors.values() if (d.specialization or "").lower() == wanted),
            key=lambda d: (d.name.lower(), d.id),
        )

    def create_appointment(self, appointment):
        self._check("create_appointment")
        self._counter += 1
        appointment.id = appointment.id or f"appt-{self._counter}"
        self.appointments.append(appointment)
        return appointment

    def create_invoice(self, invoice):
        self._check("create_invoice")
        self._counter += 1
        invoice.id = invoice.id or f"inv-{self._counter}"
        self.invoices.append(invoice)
        return invoice

    def set_payment_status(self, appointment_id, status):
        for a in self.appointments:
            if a.id == appointment_id:
                if status == "paid":
                    others = self.find_patient_appointments(a.patient_id, a.doctor_id, a.appointment_date, "paid")
                    if any(other is not a for other in others):
                        raise DuplicateBooking()
                    holder = self.find_appointment(a.doctor_id, a.appointment_date, a.time_slot, "paid")
                    if holder is not None and holder is not a:
                        raise SlotConflict()
                a.payment_status = status
                return a
        raise AppointmentNotFound()


@pytest.fixture
def memory_store():
    store = InMemoryBookingStore()
    store.add_doctor()
    store.add_patient()
    store.add_window()
    return store
