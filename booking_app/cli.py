"""Flask CLI commands for migrations, demo data, slot listing and payment status."""

from __future__ import annotations

from datetime import date, timedelta

import click
from alembic import command
from flask import current_app
from flask.cli import AppGroup, with_appcontext

from booking_app.models import PAYMENT_PAID, PAYMENT_STATUSES, parse_day
from booking_app.services.availability import available_slots
from booking_app.services.database import db as raw_db
from booking_app.services.errors import BookingError
from booking_app.services.migrations import alembic_config
from booking_app.services.payments import money, parse_money_to_cents
from booking_app.services.store import SqliteBookingStore


def register_cli(app) -> None:
    db_group = AppGroup("db")

    @db_group.command("upgrade")
    @with_appcontext
    def upgrade() -> None:
        command.upgrade(alembic_config(current_app), "head")

    app.cli.add_command(db_group)

    @app.cli.command("seed-demo")
    @click.option("--doctor-id", default="doc-1", show_default=True)
    @click.option("--doctor-name", default="Dr. Lina", show_default=True)
    @click.option("--charge", default="200", show_default=True, help="Consultancy charge.")
    @click.option("--patient-id", default="pat-1", show_default=True)
    @click.option("--patient-name", default="Demo Patient", show_default=True)
    @click.option("--day", default=None, help="YYYY-MM-DD, defaults to tomorrow.")
    @click.option("--hours", default="09:00-17:00", show_default=True)
    @with_appcontext
    def seed_demo(
        doctor_id: str,
        doctor_name: str,
        charge: str,
        patient_id: str,
        patient_name: str,
        day: str | None,
        hours: str,
    ) -> None:
        """Insert a doctor, a patient and one availability window."""

        try:
            target_day = parse_day(day) if day else date.today() + timedelta(days=1)
        except BookingError as exc:
            raise click.ClickException(exc.message) from exc
        charge_cents = parse_money_to_cents(charge)
        conn = raw_db()
        try:
            conn.execute(
                """
                INSERT INTO doctors(id, name, specialization, consultancy_charge_cents)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    consultancy_charge_cents = excluded.consultancy_charge_cents
                """,
                (doctor_id, doctor_name, "General", charge_cents),
            )
            conn.execute(
                "INSERT OR IGNORE INTO patients(id, full_name) VALUES (?, ?)",
                (patient_id, patient_name),
            )
            conn.execute(
                """
                INSERT INTO doctor_availability(doctor_id, date, available_time) VALUES (?, ?, ?)
                ON CONFLICT(doctor_id, date) DO UPDATE SET available_time = excluded.available_time
                """,
                (doctor_id, target_day.isoformat(), hours),
            )
            conn.commit()
        finally:
            conn.close()
        click.echo(
            f"Seeded {doctor_name} ({doctor_id}, charge {money(charge_cents)}) "
            f"available {hours} on {target_day.isoformat()}; patient {patient_id}."
        )

    @app.cli.command("slots")
    @click.argument("doctor_id")
    @click.argument("day")
    @with_appcontext
    def slots(doctor_id: str, day: str) -> None:
        """Print the free slots of DOCTOR_ID on DAY (YYYY-MM-DD)."""

        try:
            free = available_slots(SqliteBookingStore(), doctor_id, parse_day(day))
        except BookingError as exc:
            raise click.ClickException(exc.message) from exc
        if not free:
            click.echo("No free slots.")
            return
        for label in free:
            click.echo(label)

    @app.cli.command("mark-paid")
    @click.argument("appointment_id")
    @click.option(
        "--status",
        type=click.Choice(PAYMENT_STATUSES),
        default=PAYMENT_PAID,
        show_default=True,
    )
    @with_appcontext
    def mark_paid(appointment_id: str, status: str) -> None:
        """Record the payment status reported for APPOINTMENT_ID."""

        try:
            appointment = SqliteBookingStore().set_payment_status(appointment_id, status)
        except BookingError as exc:
            raise click.ClickException(exc.message) from exc
        current_app.logger.info("Appointment %s payment status set to %s", appointment.id, status)
        click.echo(f"Appointment {appointment.id} is now {appointment.payment_status}.")
