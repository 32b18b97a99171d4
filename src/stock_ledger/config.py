"""Application configuration — loads .env, then overrides from settings.json."""

import json
import os
from pathlib import Path

from dotenv import load_dotenv

# Find the project root (where .env lives)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# Runtime settings file for in-app configuration
_SETTINGS_FILE = _PROJECT_ROOT / "data" / "settings.json"


def _load_settings() -> dict:
    """Load saved runtime settings from JSON file."""
    if _SETTINGS_FILE.exists():
        try:
            return json.loads(_SETTINGS_FILE.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            pass
    return {}


def _save_settings(settings: dict):
    """Persist runtime settings to JSON file."""
    _SETTINGS_FILE.parent.mkdir(parents=True, exist_ok=True)
    _SETTINGS_FILE.write_text(
        json.dumps(settings, indent=2), encoding="utf-8"
    )


# Load saved settings once at import time
_runtime = _load_settings()


class Config:
    """Central configuration: .env defaults, settings.json overrides."""

    # Paths
    PROJECT_ROOT: Path = _PROJECT_ROOT
    DATABASE_PATH: Path = Path(
        os.getenv("DATABASE_PATH", str(_PROJECT_ROOT / "data" / "inventory.db"))
    )
    BACKUP_PATH: Path = Path(
        os.getenv("DATABASE_BACKUP_PATH", str(_PROJECT_ROOT / "data" / "backups"))
    )
    UPLOADS_DIRECTORY: str = _runtime.get(
        "uploads_directory",
        os.getenv("UPLOADS_DIRECTORY", str(_PROJECT_ROOT / "data" / "uploads")),
    )

    # Database
    DB_BUSY_TIMEOUT: float = float(os.getenv("DB_BUSY_TIMEOUT", "5.0"))

    # Accounts
    DEFAULT_ADMIN_USERNAME: str = os.getenv("DEFAULT_ADMIN_USERNAME", "admin")
    DEFAULT_ADMIN_PASSWORD: str = os.getenv("DEFAULT_ADMIN_PASSWORD", "admin123")
    BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "10"))

    # Inventory (settings.json overrides .env)
    LOW_STOCK_THRESHOLD: int = int(_runtime.get(
        "low_stock_threshold",
        os.getenv("LOW_STOCK_THRESHOLD", "5"),
    ))

    # Invoices
    SHOP_NAME: str = _runtime.get(
        "shop_name",
        os.getenv("SHOP_NAME", "Service Workshop"),
    )
    CURRENCY_SYMBOL: str = _runtime.get(
        "currency_symbol",
        os.getenv("CURRENCY_SYMBOL", "Rp"),
    )

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def update_low_stock_threshold(cls, threshold: int):
        """Update the low-stock alert threshold and persist to disk."""
        if threshold < 0:
            raise ValueError("Low stock threshold cannot be negative")
        cls.LOW_STOCK_THRESHOLD = threshold

        settings = _load_settings()
        settings["low_stock_threshold"] = threshold
        _save_settings(settings)

    @classmethod
    def update_invoice_settings(cls, shop_name: str, currency_symbol: str):
        """Update the invoice header and currency, then persist."""
        cls.SHOP_NAME = shop_name
        cls.CURRENCY_SYMBOL = currency_symbol

        settings = _load_settings()
        settings["shop_name"] = shop_name
        settings["currency_symbol"] = currency_symbol
        _save_settings(settings)

    @classmethod
    def update_uploads_directory(cls, directory: str):
        """Point image uploads at a new directory and persist."""
        cls.UPLOADS_DIRECTORY = directory

        settings = _load_settings()
        settings["uploads_directory"] = directory
        _save_settings(settings)
