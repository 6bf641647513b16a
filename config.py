import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv

DEFAULT_COMPLETION_URL = "https://ai.gateway.lovable.dev/v1/chat/completions"
DEFAULT_MODEL = "google/gemini-2.5-flash"


def _split_origins(raw: str) -> List[str]:
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    return origins or ["*"]


@dataclass(frozen=True)
class Settings:
    """Runtime configuration. Built once from the environment and passed down explicitly."""

    completion_api_key: Optional[str] = None
    completion_url: str = DEFAULT_COMPLETION_URL
    completion_model: str = DEFAULT_MODEL
    temperature: float = 0.7
    database_url: str = "sqlite:///./wiki_quiz.db"
    fetch_timeout: float = 20.0
    completion_timeout: float = 120.0
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    host: str = "127.0.0.1"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            completion_api_key=os.getenv("AI_API_KEY") or None,
            completion_url=os.getenv("AI_COMPLETION_URL", DEFAULT_COMPLETION_URL),
            completion_model=os.getenv("AI_MODEL", DEFAULT_MODEL),
            database_url=os.getenv("DATABASE_URL", "sqlite:///./wiki_quiz.db"),
            fetch_timeout=float(os.getenv("WIKI_FETCH_TIMEOUT", "20")),
            completion_timeout=float(os.getenv("AI_TIMEOUT", "120")),
            cors_origins=_split_origins(os.getenv("CORS_ORIGINS", "*")),
            host=os.getenv("HOST", "127.0.0.1"),
            port=int(os.getenv("PORT", "8000")),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
