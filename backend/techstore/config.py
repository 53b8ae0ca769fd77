# backend/techstore/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/techstore.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///techstore.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Fernet key for payment record fields. When unset a dev key is derived
    # from SECRET_KEY (see card_vault.resolve_card_key).
    CARD_ENCRYPTION_KEY = os.environ.get("CARD_ENCRYPTION_KEY")

    # Refunds may only be requested this many days after delivery
    REFUND_WINDOW_DAYS = int(os.environ.get("REFUND_WINDOW_DAYS", "30"))

    # Connection acquisition policy at startup
    DB_CONNECT_ATTEMPTS = int(os.environ.get("DB_CONNECT_ATTEMPTS", "5"))
    DB_CONNECT_BACKOFF = float(os.environ.get("DB_CONNECT_BACKOFF", "0.5"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
