"""
Settings Module

Environment-driven configuration for the shared property ledger.

Environment variables:
    FIREBASE_CREDENTIALS: Path to a Firebase service-account JSON file.
    FIREBASE_PROJECT_ID: Optional Firebase project id.
    LEDGER_LOG_LEVEL: Logging level name (default: INFO).
    LEDGER_API_HOST: Host the API binds to (default: 127.0.0.1).
    LEDGER_API_PORT: Port the API binds to (default: 8000).
    LEDGER_CURRENCY_SYMBOL: Symbol used when formatting amounts (default: $).
"""

import logging
import os

FIREBASE_CREDENTIALS = os.getenv("FIREBASE_CREDENTIALS", "")
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID", "")
LOG_LEVEL = os.getenv("LEDGER_LOG_LEVEL", "INFO").upper()
API_HOST = os.getenv("LEDGER_API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("LEDGER_API_PORT", 8000))
CURRENCY_SYMBOL = os.getenv("LEDGER_CURRENCY_SYMBOL", "$")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = None) -> None:
    """Install the root logging handler (no-op if one is already configured)."""
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL), logging.INFO),
        format=LOG_FORMAT
    )
