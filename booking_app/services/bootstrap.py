"""Bootstrap helper to ensure the booking tables exist for first-time runs."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Iterable

BASE_TABLES = [
    """
    CREATE TABLE IF NOT EXISTS doctors (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        specialization TEXT,
        consultancy_charge_cents INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL DEFAULT (datetime('now'))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS patients (
        id TEXT PRIMARY KEY,
        full_name TEXT NOT NULL,
        phone TEXT,
        created_at TEXT NOT NULL DEFAULT (datetime('now'))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS doctor_availability (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        doctor_id TEXT NOT NULL,
        date TEXT NOT NULL,
        available_time TEXT NOT NULL,
        FOREIGN KEY(doctor_id) REFERENCES doctors(id) ON DELETE CASCADE,
        CONSTRAINT uq_doctor_availability_day UNIQUE (doctor_id, date)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS appointments (
        id TEXT PRIMARY KEY,
        doctor_id TEXT NOT NULL,
        patient_id TEXT NOT NULL,
        appointment_date TEXT NOT NULL,
        time_slot TEXT NOT NULL,
        booking_status TEXT NOT NULL DEFAULT 'pending',
        payment_status TEXT NOT NULL DEFAULT 'pending',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        FOREIGN KEY(doctor_id) REFERENCES doctors(id) ON DELETE CASCADE,
        FOREIGN KEY(patient_id) REFERENCES patients(id) ON DELETE CASCADE,
        CONSTRAINT ck_appointments_booking_status CHECK(booking_status IN ('pending','confirmed','cancelled')),
        CONSTRAINT ck_appointments_payment_status CHECK(payment_status IN ('pending','paid','failed','refunded'))
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_appointments_doctor_day
    ON appointments(doctor_id, appointment_date)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_appointments_patient_day
    ON appointments(patient_id, doctor_id, appointment_date)
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_appointments_paid_slot
    ON appointments(doctor_id, appointment_date, time_slot)
    WHERE payment_status = 'paid'
    """,
    """
    CREATE TABLE IF NOT EXISTS invoices (
        id TEXT PRIMARY KEY,
        doctor_id TEXT NOT NULL,
        patient_id TEXT NOT NULL,
        appointment_id TEXT NOT NULL UNIQUE,
        total_amount_cents INTEGER NOT NULL,
        payment_method TEXT NOT NULL DEFAULT 'Pending',
        payment_status TEXT NOT NULL DEFAULT 'Pending',
        payment_due_date TEXT NOT NULL,
        created_at TEXT NOT NULL,
        FOREIGN KEY(appointment_id) REFERENCES appointments(id) ON DELETE CASCADE
    )
    """,
]


def _execute_statements(conn: sqlite3.Connection, statements: Iterable[str]) -> None:
    for stmt in statements:
        conn.execute(stmt)


def ensure_base_tables(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.execute("PRAGMA foreign_keys=ON")
    try:
        _execute_statements(conn, BASE_TABLES)
        conn.commit()
    finally:
        conn.close()
