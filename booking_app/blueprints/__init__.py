"""Blueprint registration."""

from __future__ import annotations

from flask import Flask

from .booking.routes import bp as booking_bp


def register_blueprints(app: Flask) -> None:
    app.register_blueprint(booking_bp)
