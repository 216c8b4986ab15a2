"""Runtime settings.

Everything is read from environment variables so the plugin commands, the
Flask app and the maintenance scripts share one configuration:

- LLM_WK_DB: SQLite file holding the key-value cache and progress
- WANIKANI_API_ROOT: base URL of the WaniKani v2 API
- WANIKANI_API_KEY: bearer token (overrides the stored one)
- WK_HTTP_TIMEOUT / WK_MAX_RETRIES / WK_BACKOFF: HTTP tuning
"""
import os
from dataclasses import dataclass
from typing import Optional

API_KEY_STORE_KEY = "wk_apikey"


@dataclass(frozen=True)
class Settings:
    db_path: str = "similar_kanji.db"
    api_root: str = "https://api.wanikani.com/v2"
    api_key: Optional[str] = None
    timeout: float = 10.0
    max_retries: int = 3
    backoff: float = 1.0
    # WaniKani pins response shapes to a revision header
    api_revision: str = "20170710"


def load_settings() -> Settings:
    api_key = os.environ.get("WANIKANI_API_KEY", "").strip() or None
    return Settings(
        db_path=os.environ.get("LLM_WK_DB", "similar_kanji.db"),
        api_root=os.environ.get("WANIKANI_API_ROOT", "https://api.wanikani.com/v2").rstrip("/"),
        api_key=api_key,
        timeout=float(os.environ.get("WK_HTTP_TIMEOUT") or 10.0),
        max_retries=int(os.environ.get("WK_MAX_RETRIES") or 3),
        backoff=float(os.environ.get("WK_BACKOFF") or 1.0),
    )
