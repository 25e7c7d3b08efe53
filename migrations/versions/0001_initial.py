"""Doctors, patients, availability, appointments and invoices."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "doctors",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("specialization", sa.Text(), nullable=True),
        sa.Column("consultancy_charge_cents", sa.Integer(), server_default="0", nullable=False),
        sa.Column("created_at", sa.Text(), server_default=sa.text("(datetime('now'))"), nullable=False),
    )

    op.create_table(
        "patients",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("full_name", sa.Text(), nullable=False),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("created_at", sa.Text(), server_default=sa.text("(datetime('now'))"), nullable=False),
    )

    op.create_table(
        "doctor_availability",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("doctor_id", sa.Text(), nullable=False),
        sa.Column("date", sa.Text(), nullable=False),
        sa.Column("available_time", sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(["doctor_id"], ["doctors.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("doctor_id", "date", name="uq_doctor_availability_day"),
    )

    op.create_table(
        "appointments",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("doctor_id", sa.Text(), nullable=False),
        sa.Column("patient_id", sa.Text(), nullable=False),
        sa.Column("appointment_date", sa.Text(), nullable=False),
        sa.Column("time_slot", sa.Text(), nullable=False),
        sa.Column("booking_status", sa.Text(), server_default="pending", nullable=False),
        sa.Column("payment_status", sa.Text(), server_default="pending", nullable=False),
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(["doctor_id"], ["doctors.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "booking_status IN ('pending','confirmed','cancelled')",
            name="ck_appointments_booking_status",
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending','paid','failed','refunded')",
            name="ck_appointments_payment_status",
        ),
    )
    op.create_index("idx_appointments_doctor_day", "appointments", ["doctor_id", "appointment_date"])
    op.create_index(
        "idx_appointments_patient_day",
        "appointments",
        ["patient_id", "doctor_id", "appointment_date"],
    )
    op.execute(
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_appointments_paid_slot "
        "ON appointments(doctor_id, appointment_date, time_slot) "
        "WHERE payment_status = 'paid'"
    )

    op.create_table(
        "invoices",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("doctor_id", sa.Text(), nullable=False),
        sa.Column("patient_id", sa.Text(), nullable=False),
        sa.Column("appointment_id", sa.Text(), nullable=False, unique=True),
        sa.Column("total_amount_cents", sa.Integer(), nullable=False),
        sa.Column("payment_method", sa.Text(), server_default="Pending", nullable=False),
        sa.Column("payment_status", sa.Text(), server_default="Pending", nullable=False),
        sa.Column("payment_due_date", sa.Text(), nullable=False),
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointments.id"], ondelete="CASCADE"),
    )


def downgrade() -> None:
    op.drop_table("invoices")
    op.execute("DROP INDEX IF EXISTS idx_appointments_paid_slot")
    op.drop_index("idx_appointments_patient_day", table_name="appointments")
    op.drop_index("idx_appointments_doctor_day", table_name="appointments")
    op.drop_table("appointments")
    op.drop_table("doctor_availability")
    op.drop_table("patients")
    op.drop_table("doctors")
