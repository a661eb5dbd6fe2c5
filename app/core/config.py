"""
Academy Configuration
Environment-driven settings and commercial constants
"""

import os
from typing import Optional


# Commercial constants (KWD)
COURSE_PRICE_KWD = 47
UPSELL_PRICE_KWD = 60
COMMUNITY_PRICE_KWD = 9
CURRENCY = "KWD"
MIN_CHARGE_KWD = 0.5

COMMUNITY_TRIAL_DAYS = 7
REFUND_GUARANTEE_DAYS = 14

# A lesson counts as completed from this watch percentage
COMPLETION_THRESHOLD = 90

COUPONS = {
    "TEST99": 99,
    "SAVE50": 50,
}


class Config:
    """Validated configuration - fails fast on missing secrets"""

    def __init__(self):
        self.MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
        self.MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "academy_db")

        self.JWT_SECRET_KEY = self._require_env("JWT_SECRET_KEY")
        self.JWT_ALGORITHM = "HS256"
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "168"))

        self.APP_ORIGIN = os.getenv("APP_ORIGIN", "http://localhost:3000")

        self.RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID")
        self.RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET")
        self.RAZORPAY_WEBHOOK_SECRET = os.getenv("RAZORPAY_WEBHOOK_SECRET")

        self.RENEWALS_CRON_SECRET = os.getenv("RENEWALS_CRON_SECRET")

        self.FILES_STORAGE_DIR = os.getenv("FILES_STORAGE_DIR", "data/community-files")
        self.MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_MB", "50")) * 1024 * 1024

        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_FORMAT = os.getenv("LOG_FORMAT", "console")
        self.VERSION = os.getenv("VERSION", "unknown")

    @staticmethod
    def _require_env(key: str) -> str:
        """Get required environment variable or crash"""
        value = os.getenv(key)
        if not value:
            raise RuntimeError(f"FATAL: Missing required environment variable: {key}")
        return value


_cached_config: Optional[Config] = None


def get_config() -> Config:
    global _cached_config
    if _cached_config is None:
        _cached_config = Config()
    return _cached_config


def clear_config_cache() -> None:
    """Drop the cached config so the next call re-reads the environment."""
    global _cached_config
    _cached_config = None
