"""Environment-driven runtime settings.

Every knob has a default that matches the exports we ingest; environment
variables (optionally loaded from ``.env`` by the CLI) override them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path

from .logging_setup import get_logger

logger = get_logger("upi_ledger.settings")

# Indian Standard Time; exports that omit an offset are local to India.
IST = timezone(timedelta(hours=5, minutes=30), "IST")

DEFAULT_PREVIEW_BYTES = 10 * 1024
DEFAULT_USD_INR_RATE = Decimal("83")
DEFAULT_MAX_SECRET_ATTEMPTS = 3


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", name, raw)
        return default
    if value < 1:
        logger.warning("Ignoring non-positive %s=%r", name, raw)
        return default
    return value


def _env_decimal(name: str, default: Decimal) -> Decimal:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = Decimal(raw.strip())
    except InvalidOperation:
        logger.warning("Ignoring non-numeric %s=%r", name, raw)
        return default
    return value if value > 0 else default


@dataclass(frozen=True, slots=True)
class Settings:
    preview_bytes: int = DEFAULT_PREVIEW_BYTES
    usd_inr_rate: Decimal = DEFAULT_USD_INR_RATE
    max_secret_attempts: int = DEFAULT_MAX_SECRET_ATTEMPTS
    rules_path: Path | None = None

    @classmethod
    def from_env(cls) -> Settings:
        rules = os.getenv("UPI_LEDGER_RULES_PATH")
        return cls(
            preview_bytes=_env_int("UPI_LEDGER_PREVIEW_BYTES", DEFAULT_PREVIEW_BYTES),
            usd_inr_rate=_env_decimal("UPI_LEDGER_USD_INR_RATE", DEFAULT_USD_INR_RATE),
            max_secret_attempts=_env_int(
                "UPI_LEDGER_MAX_SECRET_ATTEMPTS", DEFAULT_MAX_SECRET_ATTEMPTS
            ),
            rules_path=Path(rules).expanduser() if rules else None,
        )
