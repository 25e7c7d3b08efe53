"""Alembic migration helpers."""

from __future__ import annotations

import os
from pathlib import Path

from alembic import command
from alembic.config import Config
from flask import Flask


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


def alembic_config(app: Flask) -> Config:
    """Expose a configured Alembic Config for CLI commands."""

    root = _repo_root()
    cfg = Config(str(root / "alembic.ini"))
    cfg.set_main_option("script_location", str(root / "migrations"))
    cfg.set_main_option("sqlalchemy.url", app.config["SQLALCHEMY_DATABASE_URI"])
    cfg.attributes["configure_logger"] = False
    return cfg


def run_migrations(app: Flask) -> None:
    """Upgrade the database to the latest revision."""

    command.upgrade(alembic_config(app), "head")


def auto_upgrade(app: Flask) -> None:
    """Run `alembic upgrade head` automatically if enabled."""

    if os.getenv("BOOKING_AUTO_MIGRATE", "1") != "1":
        return

    root = _repo_root()
    if not (root / "alembic.ini").exists() or not (root / "migrations").exists():
        return

    try:
        run_migrations(app)
    except Exception as exc:  # pragma: no cover
        app.logger.warning("Auto migration skipped: %s", exc)
