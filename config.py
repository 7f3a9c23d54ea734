"""
config.py – Centralised configuration loaded from environment variables.
"""

import os

from dotenv import load_dotenv

from errors import ConfigError

load_dotenv()

VALID_SOURCES = {"testrail", "azure"}


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "y")


class Settings:
    """Validated, read-only application settings."""

    # ── TMS connection ──────────────────────────────────────
    TMS_SOURCE: str = os.getenv("TMS_SOURCE", "testrail").lower().strip()
    TMS_URL: str = os.getenv("TMS_URL", "")
    TMS_USER: str = os.getenv("TMS_USER", "")
    TMS_PASSWORD: str = os.getenv("TMS_PASSWORD", "")
    TMS_TIMEOUT: int = int(os.getenv("TMS_TIMEOUT", "30"))

    # ── Behaviour ───────────────────────────────────────────
    TMS_CLOSE_PREVIOUS_RUNS: bool = _flag("TMS_CLOSE_PREVIOUS_RUNS")
    SKIP_SCENARIO_PREFIX: str = os.getenv("SYNC_SKIP_SCENARIO_PREFIX", "nat").lower()

    @classmethod
    def validate(cls) -> None:
        """Raise ConfigError if required values are missing."""
        if cls.TMS_SOURCE not in VALID_SOURCES:
            raise ConfigError(
                f"Unknown TMS_SOURCE='{cls.TMS_SOURCE}'. "
                f"Valid options: {', '.join(sorted(VALID_SOURCES))}"
            )

        missing: list[str] = []
        if not cls.TMS_URL:
            missing.append("TMS_URL")
        if not cls.TMS_PASSWORD:
            missing.append("TMS_PASSWORD")
        if cls.TMS_SOURCE == "testrail" and not cls.TMS_USER:
            missing.append("TMS_USER")

        if missing:
            raise ConfigError(
                f"Missing required environment variables: {', '.join(missing)}. "
                "Copy .env.example to .env and fill in all values."
            )
