# backend/warehouse/config.py
from __future__ import annotations
import os


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/warehouse.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///warehouse.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # The distinguished admin identity. Holds every permission regardless of stored flags.
    ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "admin@warehouse.local")

    # Storage calls that wait longer than this are treated as storage failures
    STORAGE_TIMEOUT_SECONDS = _int_env("STORAGE_TIMEOUT_SECONDS", 10)

    DASHBOARD_DAYS = _int_env("DASHBOARD_DAYS", 7)
    REPORT_MONTHS = _int_env("REPORT_MONTHS", 6)
    RECENT_TRANSACTIONS_LIMIT = _int_env("RECENT_TRANSACTIONS_LIMIT", 10)

    CORS_ALLOWED_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    }
