# backend/orderdesk/config.py
from __future__ import annotations
import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/orderdesk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///orderdesk.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Seconds a SQLite writer waits on a held lock before raising OperationalError
    SQLITE_BUSY_TIMEOUT = float(os.environ.get("SQLITE_BUSY_TIMEOUT", "5"))

    LOCK_RETRY_ATTEMPTS = int(os.environ.get("LOCK_RETRY_ATTEMPTS", "3"))
    LOCK_RETRY_BACKOFF = float(os.environ.get("LOCK_RETRY_BACKOFF", "0.1"))

    # Owner id of the company-wide (main) inventory tier
    MAIN_INVENTORY_OWNER_ID = os.environ.get("MAIN_INVENTORY_OWNER_ID", "main")

    ORDER_NUMBER_PREFIX = os.environ.get("ORDER_NUMBER_PREFIX", "ORD")
    ORDER_NUMBER_PAD = int(os.environ.get("ORDER_NUMBER_PAD", "6"))

    DEFAULT_CLIENT_ACCOUNT_TYPE = os.environ.get("DEFAULT_CLIENT_ACCOUNT_TYPE", "Standard Accounts")

    # Unset: notifications are logged only
    NOTIFICATION_WEBHOOK_URL = os.environ.get("NOTIFICATION_WEBHOOK_URL")
    NOTIFICATION_TIMEOUT = float(os.environ.get("NOTIFICATION_TIMEOUT", "5"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
