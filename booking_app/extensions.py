"""Application extensions (SQLAlchemy engine, CSRF, limiter)."""

from __future__ import annotations

import os
import sqlite3

from flask import Flask
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_wtf import CSRFProtect
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


class SQLAlchemyEngine:
    """Pooled SQLite engine handing out raw DB-API connections to the store."""

    def __init__(self) -> None:
        self._engine: Engine | None = None

    def init_app(self, app: Flask) -> None:
        uri = app.config["SQLALCHEMY_DATABASE_URI"]
        engine_options = app.config.get("SQLALCHEMY_ENGINE_OPTIONS", {})
        if self._engine is not None:
            self._engine.dispose()
        self._engine = create_engine(uri, future=True, **engine_options)
        app.extensions["db"] = self

        @event.listens_for(self._engine, "connect")
        def _set_pragmas(dbapi_connection, connection_record) -> None:  # type: ignore[override]
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("SQLAlchemy engine is not initialised")
        return self._engine

    def raw_connection(self) -> sqlite3.Connection:
        engine = self.engine
        raw = engine.raw_connection()
        driver_conn = getattr(raw, "driver_connection", None)
        if driver_conn is None:
            driver_conn = raw.connection  # type: ignore[attr-defined]
        if hasattr(driver_conn, "row_factory"):
            driver_conn.row_factory = sqlite3.Row
        return raw


db = SQLAlchemyEngine()
csrf = CSRFProtect()
limiter = Limiter(get_remote_address, storage_uri=os.getenv("RATELIMIT_STORAGE_URI", "memory://"))


def init_extensions(app: Flask) -> None:
    db.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)
