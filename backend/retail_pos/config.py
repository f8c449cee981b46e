# backend/retail_pos/config.py
from __future__ import annotations
import os


class Config:
    """Read at create_app() time so env overrides set by tests take effect."""

    def __init__(self) -> None:
        self.SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

        # SQLite DB stored in backend/instance/retail_pos.sqlite3
        self.SQLALCHEMY_DATABASE_URI = os.environ.get(
            "DATABASE_URL",
            "sqlite:///retail_pos.sqlite3",
        )
        self.SQLALCHEMY_TRACK_MODIFICATIONS = False

        # Bounded retries when a generated transaction number hits the unique constraint
        self.TRANSACTION_NUMBER_ATTEMPTS = int(os.environ.get("TRANSACTION_NUMBER_ATTEMPTS", "3"))

        # Allowed |sum(payments) - final_amount|, in cents
        self.PAYMENT_TOLERANCE_CENTS = int(os.environ.get("PAYMENT_TOLERANCE_CENTS", "1"))

        # Comma-separated browser origins allowed to call the API (POS front-end dev server by default)
        self.CORS_ORIGINS = [
            o.strip()
            for o in os.environ.get("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
            if o.strip()
        ]

        self.REPORT_TOP_PRODUCTS_LIMIT = int(os.environ.get("REPORT_TOP_PRODUCTS_LIMIT", "10"))
        self.TRANSACTIONS_DEFAULT_LIMIT = int(os.environ.get("TRANSACTIONS_DEFAULT_LIMIT", "50"))
