# backend/invoicing/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/invoicing.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///invoicing.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Upper bound on how long a finalization waits for a product row lock
    LOCK_TIMEOUT_SECONDS = float(os.environ.get("LOCK_TIMEOUT_SECONDS", "5"))

    # When set, an underpaid cart is rejected instead of stored as PARTIAL
    REQUIRE_FULL_PAYMENT = _env_bool("REQUIRE_FULL_PAYMENT", False)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Seeded by `flask system init`
    DEFAULT_PAYMENT_METHODS = [
        name.strip()
        for name in os.environ.get("DEFAULT_PAYMENT_METHODS", "Cash,Card").split(",")
        if name.strip()
    ]
