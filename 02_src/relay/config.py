"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "relay.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def _env_list(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    """Runtime settings read from environment variables."""

    database_url: str | None = None
    dialogue_api_base: str = "http://localhost:3000/api/v1"
    dialogue_api_key: str = ""
    default_flow_id: str = "default"
    dialogue_timeout: float = 15.0
    language: str = "pt"
    choice_ttl_minutes: int = 30
    sweep_interval_seconds: float = 300.0
    match_min_score: float = 0.4
    reset_keywords: list[str] = field(default_factory=lambda: ["VOLTAR"])
    wa_id_pattern: str = r"^\d{10,15}$"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment."""
        return cls(
            database_url=os.getenv("DATABASE_URL"),
            dialogue_api_base=os.getenv(
                "DIALOGUE_API_BASE", "http://localhost:3000/api/v1"
            ).rstrip("/"),
            dialogue_api_key=os.getenv("DIALOGUE_API_KEY", ""),
            default_flow_id=os.getenv("DIALOGUE_FLOW_ID", "default"),
            dialogue_timeout=float(os.getenv("DIALOGUE_TIMEOUT", "15")),
            language=os.getenv("BOT_LANGUAGE", "pt"),
            choice_ttl_minutes=int(os.getenv("CHOICE_TTL_MINUTES", "30")),
            sweep_interval_seconds=float(os.getenv("SWEEP_INTERVAL_SECONDS", "300")),
            match_min_score=float(os.getenv("MATCH_MIN_SCORE", "0.4")),
            reset_keywords=_env_list("RESET_KEYWORDS", "VOLTAR"),
            wa_id_pattern=os.getenv("WA_ID_PATTERN", r"^\d{10,15}$"),
        )
