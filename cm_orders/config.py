"""Configuration management from environment variables."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file
load_dotenv()

# Project root
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", str(PROJECT_ROOT / "data")))
DB_PATH = DATA_DIR / "cardmarket.db"
STORAGE_STATE_PATH = DATA_DIR / "cardmarket-storage-state.json"

# Ensure directories exist
DATA_DIR.mkdir(parents=True, exist_ok=True)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration."""

    # Cardmarket
    BASE_URL: str = os.getenv("CARDMARKET_BASE_URL", "https://www.cardmarket.com")
    HOME_URL: str = os.getenv("CARDMARKET_HOME_URL", f"{BASE_URL}/en/OnePiece")
    LOGIN_URL: str = os.getenv("CARDMARKET_LOGIN_URL", f"{HOME_URL}/Login")
    USERNAME: str | None = os.getenv("CARDMARKET_USERNAME")
    PASSWORD: str | None = os.getenv("CARDMARKET_PASSWORD")

    # Browser
    STORAGE_STATE_PATH: Path = Path(os.getenv("STORAGE_STATE_PATH", str(STORAGE_STATE_PATH)))
    HEADLESS: bool = _env_bool("HEADLESS", True)
    LOCALE: str = os.getenv("BROWSER_LOCALE", "en-GB")
    USER_AGENT: str = os.getenv(
        "BROWSER_USER_AGENT",
        "Mozilla/5.0 (Windows NT 10.0; WOW64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/135.0.0.0 Safari/537.36",
    )
    TIMEOUT_MS: int = int(os.getenv("TIMEOUT_MS", "10000"))
    LOGIN_CHECK_TIMEOUT_MS: int = int(os.getenv("LOGIN_CHECK_TIMEOUT_MS", "2000"))
    SETTLE_MS: int = int(os.getenv("SETTLE_MS", "250"))

    # Crawler
    SEARCH_DELAY_MAX: float = float(os.getenv("SEARCH_DELAY_MAX", "4.0"))
    ORDER_DELAY_MAX: float = float(os.getenv("ORDER_DELAY_MAX", "3.0"))
    CRAWL_WINDOW_DAYS: int = int(os.getenv("CRAWL_WINDOW_DAYS", "30"))
    CRAWL_OVERLAP_DAYS: int = int(os.getenv("CRAWL_OVERLAP_DAYS", "15"))
    SHIPMENT_STATUS: int = int(os.getenv("SHIPMENT_STATUS", "200"))

    # Storage
    DB_PATH: Path = Path(os.getenv("DB_PATH", str(DB_PATH)))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # API Security
    API_KEY: str | None = os.getenv("API_KEY")

    @classmethod
    def validate(cls, require_credentials: bool = True) -> None:
        """Validate required configuration."""
        errors = []
        if not cls.HOME_URL:
            errors.append("CARDMARKET_HOME_URL is required")
        if not cls.LOGIN_URL:
            errors.append("CARDMARKET_LOGIN_URL is required")
        if require_credentials:
            if not cls.USERNAME:
                errors.append("CARDMARKET_USERNAME is required")
            if not cls.PASSWORD:
                errors.append("CARDMARKET_PASSWORD is required")
        if cls.CRAWL_OVERLAP_DAYS >= cls.CRAWL_WINDOW_DAYS:
            errors.append("CRAWL_OVERLAP_DAYS must be smaller than CRAWL_WINDOW_DAYS")
        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")


config = Config()
