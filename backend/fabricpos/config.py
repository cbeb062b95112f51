# backend/fabricpos/config.py
from __future__ import annotations
import os


def _csv(value: str) -> set[str]:
    return {item.strip() for item in value.split(",") if item.strip()}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/fabricpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///fabricpos.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Sale numbers look like RF20240315042
    SALE_NUMBER_PREFIX = os.environ.get("SALE_NUMBER_PREFIX", "RF")
    SALE_NUMBER_MAX_ATTEMPTS = int(os.environ.get("SALE_NUMBER_MAX_ATTEMPTS", "10"))

    CORS_ALLOWED_ORIGINS = _csv(os.environ.get(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000",
    ))

    # Used by `flask system init` when no --password is given
    DEFAULT_ADMIN_PASSWORD = os.environ.get("DEFAULT_ADMIN_PASSWORD", "admin123")
