# backend/posboard/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/posboard.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///posboard.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Browser origins allowed to call the API (comma separated)
    CORS_ALLOWED_ORIGINS = [
        o.strip()
        for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if o.strip()
    ]

    # Receipt header
    SHOP_NAME = os.environ.get("SHOP_NAME", "INJAPAN POS")
    SHOP_TAGLINE = os.environ.get("SHOP_TAGLINE", "Tokyo - www.injapanpos.com")

    # Day/month buckets are aligned to this zone; storage stays UTC
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "Asia/Tokyo")

    # Financial estimate placeholders (no persisted costing data exists)
    COST_RATIO_BPS = int(os.environ.get("COST_RATIO_BPS", "5000"))
    FIXED_MONTHLY_EXPENSE = int(os.environ.get("FIXED_MONTHLY_EXPENSE", "50000"))

    RECENT_TRANSACTIONS_LIMIT = int(os.environ.get("RECENT_TRANSACTIONS_LIMIT", "5"))

    # Staff bearer sessions
    SESSION_ABSOLUTE_HOURS = int(os.environ.get("SESSION_ABSOLUTE_HOURS", "24"))
    SESSION_IDLE_MINUTES = int(os.environ.get("SESSION_IDLE_MINUTES", "120"))
