"""Doctor appointment booking package exposing the Flask application factory."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

from flask import Flask, jsonify
from flask_wtf.csrf import CSRFError

from .blueprints import register_blueprints
from .cli import register_cli
from .extensions import init_extensions
from .services.bootstrap import ensure_base_tables
from .services.migrations import auto_upgrade
from .services.payments import parse_money_to_cents


def _data_root(base_dir: Path, override: Path | None = None) -> Path:
    root = override if override else base_dir / "data"
    root.mkdir(parents=True, exist_ok=True)
    (root / "logs").mkdir(parents=True, exist_ok=True)
    return root


def create_app(overrides: Mapping[str, Any] | None = None) -> Flask:
    project_root = Path(__file__).resolve().parent.parent
    db_override = os.getenv("BOOKING_DB_PATH")
    override_root = Path(db_override).parent if db_override else None
    data_root = _data_root(project_root, override_root)
    db_path = Path(db_override) if db_override else data_root / "app.db"

    app = Flask(__name__)

    secret_key = os.getenv("BOOKING_SECRET_KEY")
    if not secret_key:
        secret_key = os.urandom(32)

    app.config.update(
        SECRET_KEY=secret_key,
        SESSION_COOKIE_NAME="booking_session",
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        SQLALCHEMY_DATABASE_URI=f"sqlite:///{db_path}",
        SQLALCHEMY_ENGINE_OPTIONS={"connect_args": {"check_same_thread": False}},
        RATELIMIT_STORAGE_URI=os.getenv("RATELIMIT_STORAGE_URI", "memory://"),
        DATA_ROOT=str(data_root),
        BOOKING_DB=str(db_path),
        APPOINTMENT_SLOT_MINUTES=int(os.getenv("APPOINTMENT_SLOT_MINUTES", "30")),
        INVOICE_SURCHARGE_CENTS=parse_money_to_cents(os.getenv("INVOICE_SURCHARGE", "50")),
        INVOICE_DUE_DAYS=int(os.getenv("INVOICE_DUE_DAYS", "1")),
        BOOKING_RATE_LIMIT=os.getenv("BOOKING_RATE_LIMIT", "60 per minute"),
    )
    if overrides:
        app.config.update(overrides)

    init_extensions(app)
    register_blueprints(app)
    auto_upgrade(app)
    ensure_base_tables(Path(app.config["BOOKING_DB"]))
    register_cli(app)

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning("CSRF validation failed: %s", e.description)
        return jsonify({"success": False, "code": "csrf_failed", "error": f"CSRF validation failed: {e.description}"}), 400

    @app.errorhandler(400)
    def handle_bad_request(e):
        app.logger.warning("Bad request: %s", e)
        return jsonify({"success": False, "code": "bad_request", "error": "Bad request - check request format and CSRF token"}), 400

    @app.errorhandler(429)
    def handle_rate_limited(e):
        return jsonify({"success": False, "code": "rate_limited", "error": "Too many requests, slow down."}), 429

    return app


__all__ = ["create_app"]
