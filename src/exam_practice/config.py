from __future__ import annotations
import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number") from None

def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer") from None

@dataclass(frozen=True)
class Settings:
    bot_token: str
    database_url: str
    exam_source: str
    hint_backend: str = "openai"  # openai|gemini
    hint_model: str = "gpt-3.5-turbo"
    hint_base_url: str = "https://api.openai.com/v1"
    hint_max_tokens: int = 50
    hint_temperature: float = 0.7
    hint_timeout_s: float = 20.0
    exam_load_timeout_s: float = 10.0

def load_settings() -> Settings:
    load_dotenv()
    bot_token = os.getenv("BOT_TOKEN")
    if not bot_token:
        raise RuntimeError("BOT_TOKEN is required")

    database_url = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./data/app.db")
    exam_source = os.getenv("EXAM_SOURCE", "data/questions.json").strip()
    hint_backend = os.getenv("HINT_BACKEND", "openai").strip().lower()
    if hint_backend not in {"openai", "gemini"}:
        raise RuntimeError("HINT_BACKEND must be openai or gemini")
    default_model = "gpt-3.5-turbo" if hint_backend == "openai" else "gemini-2.0-flash"
    hint_model = os.getenv("HINT_MODEL", default_model).strip()
    hint_base_url = os.getenv("HINT_BASE_URL", "https://api.openai.com/v1").strip().rstrip("/")

    hint_max_tokens = _int_env("HINT_MAX_TOKENS", 50)
    if hint_max_tokens <= 0:
        raise RuntimeError("HINT_MAX_TOKENS must be positive")
    hint_timeout_s = _float_env("HINT_TIMEOUT_S", 20.0)
    if hint_timeout_s <= 0:
        raise RuntimeError("HINT_TIMEOUT_S must be positive")

    return Settings(
        bot_token=bot_token,
        database_url=database_url,
        exam_source=exam_source,
        hint_backend=hint_backend,
        hint_model=hint_model,
        hint_base_url=hint_base_url,
        hint_max_tokens=hint_max_tokens,
        hint_temperature=_float_env("HINT_TEMPERATURE", 0.7),
        hint_timeout_s=hint_timeout_s,
        exam_load_timeout_s=_float_env("EXAM_LOAD_TIMEOUT_S", 10.0),
    )
