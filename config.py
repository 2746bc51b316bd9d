"""
config.py - Environment-driven settings.

Values are read once at import time and never change afterwards. A local
`.env` file is honoured when present.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

try:
    load_dotenv()
except UnicodeDecodeError:
    # Fallback for legacy Windows-encoded .env files.
    load_dotenv(encoding="cp1252")

# -- Configuration --

# The one version literal accepted when decoding QR text. The payment
# standard currently defines 0200; minor revisions are not accepted unless
# configured here.
SUPPORTED_VERSION = os.getenv("QRBILL_SUPPORTED_VERSION", "0200").strip() or "0200"

# Default log format for the CLI (overridden by --log-json).
LOG_JSON = os.getenv("QRBILL_LOG_JSON", "").strip().lower() in {"1", "true", "yes", "on"}
