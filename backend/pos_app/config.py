# backend/pos_app/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Order numbers carry a random suffix; a unique-constraint hit regenerates it
    ORDER_NUMBER_ATTEMPTS = int(os.environ.get("POS_ORDER_NUMBER_ATTEMPTS", "3"))

    # Backoff base (seconds) between retries of lock/conflict failures
    RETRY_BACKOFF_BASE = float(os.environ.get("POS_RETRY_BACKOFF", "0.1"))

    # How many orders the list endpoints return when no limit is given
    DEFAULT_PRINCIPAL_ORDER_LIMIT = 50
    DEFAULT_ORDER_LIMIT = 100
