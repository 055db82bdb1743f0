"""Default application settings.

Loaded first by ``create_app``; ``DRIVENOW_*`` environment variables and the
mapping passed to the factory override them in that order.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[1]


class DefaultConfig:
    SECRET_KEY = "dev-secret-change-me"

    # None keeps the store in memory only
    DATA_PATH = str(BASE_DIR / "data.pkl")

    TIMEZONE = "Asia/Ho_Chi_Minh"
    DEFAULT_TAX_RATE = 10
    DEFAULT_DUE_DAYS = 7
    PAGE_SIZE = 20

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOGIN_DISABLED = False
