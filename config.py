"""
config.py
Settings read from the environment (a local .env file is loaded first).
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DB_FILE = Path(os.getenv("GYM_DB_FILE", str(Path(__file__).with_name("gym.db"))))

# Canonical "expiring soon" lookahead used by every status badge, filter and counter
EXPIRING_SOON_DAYS = int(os.getenv("GYM_EXPIRING_SOON_DAYS", "7"))

# Wider threshold for the renewals view only; it does not change the status
RENEWAL_WINDOW_DAYS = int(os.getenv("GYM_RENEWAL_WINDOW_DAYS", "30"))

DEFAULT_ADMIN_USERNAME = os.getenv("GYM_DEFAULT_ADMIN_USERNAME", "admin")
DEFAULT_ADMIN_PASSWORD = os.getenv("GYM_DEFAULT_ADMIN_PASSWORD", "admin123")

LOG_LEVEL = os.getenv("GYM_LOG_LEVEL", "INFO").upper()
