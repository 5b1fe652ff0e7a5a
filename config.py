import logging
import os

from dotenv import load_dotenv

load_dotenv()

COUNTRIES_API = "https://restcountries.com/v2/all?fields=name,capital,region,population,flag,currencies"
EXCHANGE_RATE_API = "https://open.er-api.com/v6/latest/USD"


class Settings:
    """Process settings read from the environment (and `.env` if present)."""

    def __init__(self):
        self.database_url = os.getenv("DATABASE_URL") or "sqlite:///./local.db"
        self.countries_api_url = os.getenv("COUNTRIES_API_URL") or COUNTRIES_API
        self.exchange_api_url = os.getenv("EXCHANGE_API_URL") or EXCHANGE_RATE_API
        self.fetch_timeout = float(os.getenv("FETCH_TIMEOUT") or 15)
        self.cache_dir = os.getenv("CACHE_DIR") or "cache"
        self.log_level = (os.getenv("LOG_LEVEL") or "INFO").upper()

    @property
    def summary_path(self) -> str:
        return os.path.join(self.cache_dir, "summary.png")


settings = Settings()


def configure_logging(level: str = None):
    logging.basicConfig(
        level=level or settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
