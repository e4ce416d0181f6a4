from __future__ import annotations
import os
from typing import Dict, Any

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ('1', 'true', 'yes')


class Settings:
    """Lightweight settings wrapper that reads from environment variables.

    Every knob of the activity engine lives here so the explorer adapter,
    the RPC adapter and the classifier can be tuned without code changes.
    Keyword overrides win over the environment, which keeps tests simple.
    """

    def __init__(self, **overrides: Any) -> None:
        self.ENV: str = os.getenv('FLASK_ENV', 'development')
        self.DEBUG: bool = _env_flag('FLASK_DEBUG', '0')
        self.LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO').upper()

        self.EXPLORER_API: str = os.getenv('EXPLORER_API', 'https://zentrace.io/api')
        self.RPC_URL: str = os.getenv('RPC_URL', 'https://zenchain-testnet.api.onfinality.io/public')
        self.EXPLORER_TIMEOUT: float = _env_float('EXPLORER_TIMEOUT', 20.0)
        self.RPC_TIMEOUT: float = _env_float('RPC_TIMEOUT', 10.0)

        # Explorer pages are cached briefly and expired pages are swept on insert,
        # so the page cache holds at most ~2x TTL of traffic. RPC lookups live for the process
        self.FEED_CACHE_TTL_SECONDS: float = _env_float('FEED_CACHE_TTL_SECONDS', 25.0)
        self.FEED_PAGE_SIZE: int = _env_int('FEED_PAGE_SIZE', 100)
        self.FEED_MAX_PAGES: int = _env_int('FEED_MAX_PAGES', 20)
        self.FEED_ABS_MAX_PAGES: int = _env_int('FEED_ABS_MAX_PAGES', 300)

        self.TX_CONCURRENCY: int = _env_int('TX_CONCURRENCY', 8)
        self.RECEIPT_CONCURRENCY: int = _env_int('RECEIPT_CONCURRENCY', 10)
        self.RPC_RETRIES: int = _env_int('RPC_RETRIES', 2)
        self.RPC_BACKOFF_SECONDS: float = _env_float('RPC_BACKOFF_SECONDS', 0.12)

        self.HYDRATE_INTERNALS: bool = _env_flag('HYDRATE_INTERNALS', '1')
        self.HYDRATE_TOKENS: bool = _env_flag('HYDRATE_TOKENS', '1')
        self.HYDRATE_INT_LIMIT: int = _env_int('HYDRATE_INT_LIMIT', 200)
        self.HYDRATE_TOKEN_LIMIT: int = _env_int('HYDRATE_TOKEN_LIMIT', 350)

        # Receipt scans for unknown outgoing calls; very active wallets can
        # exceed this and keep some mints as 'other'
        self.MAX_MINTDOMAIN_CANDIDATES: int = _env_int('MAX_MINTDOMAIN_CANDIDATES', 220)

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError(f"Unknown setting: {key}")
            setattr(self, key, value)

    @staticmethod
    def from_env() -> 'Settings':
        return Settings()

    def as_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in vars(self).items() if k.isupper()}


# Convenience singleton
settings = Settings()
