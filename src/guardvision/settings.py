"""Runtime configuration loaded from the environment.

All variables share the ``GUARDVISION_`` prefix. The module has no side
effects on import so it can be used from the CLI, the Gradio UI and FastAPI
alike.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional
import os


def _parse_bool(value: str | None, *, default: bool) -> bool:
    if value is None:
        return default
    v = value.strip().lower()
    if v in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if v in {"0", "false", "f", "no", "n", "off"}:
        return False
    return default


def _split_csv(value: str | None) -> List[str]:
    if not value:
        return []
    parts = [p.strip() for p in value.split(",") if p.strip()]
    return parts


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(f"GUARDVISION_{name}", default)


@dataclass
class Settings:
    """Detector, redaction defaults and server bindings."""

    detector: str = "gemini"  # 'gemini' or 'ollama'
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-3-pro-preview"
    gemini_url: str = "https://generativelanguage.googleapis.com/v1beta"
    ollama_url: str = "http://localhost:11434/api/generate"
    ollama_model: str = "qwen2.5vl:7b"
    detect_timeout: int = 120
    detect_retries: int = 0
    prompt_path: Optional[str] = None
    fill_color: str = "#000000"
    fill_opacity: float = 1.0
    api_host: str = "127.0.0.1"
    api_port: int = 8000
    ui_host: str = "127.0.0.1"
    ui_port: int = 7860
    cors_origins: List[str] = field(default_factory=list)
    readiness_check_detector: bool = False

    @staticmethod
    def from_env() -> "Settings":
        api_key = (
            _env("GEMINI_API_KEY")
            or os.environ.get("GEMINI_API_KEY")
            or os.environ.get("API_KEY")
        )
        return Settings(
            detector=(_env("DETECTOR", "gemini") or "gemini").strip().lower(),
            gemini_api_key=api_key,
            gemini_model=_env("GEMINI_MODEL", "gemini-3-pro-preview"),
            gemini_url=_env(
                "GEMINI_URL", "https://generativelanguage.googleapis.com/v1beta"
            ),
            ollama_url=_env("OLLAMA_URL", "http://localhost:11434/api/generate"),
            ollama_model=_env("OLLAMA_MODEL", "qwen2.5vl:7b"),
            detect_timeout=int(_env("DETECT_TIMEOUT", "120")),
            detect_retries=int(_env("DETECT_RETRIES", "0")),
            prompt_path=_env("PROMPT_PATH"),
            fill_color=_env("FILL_COLOR", "#000000"),
            fill_opacity=float(_env("FILL_OPACITY", "1.0")),
            api_host=_env("API_HOST", "127.0.0.1"),
            api_port=int(_env("API_PORT", "8000")),
            ui_host=_env("UI_HOST", "127.0.0.1"),
            ui_port=int(_env("UI_PORT", "7860")),
            cors_origins=_split_csv(_env("CORS_ORIGINS")),
            readiness_check_detector=_parse_bool(
                _env("READY_CHECK_DETECTOR"), default=False
            ),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings."""
    return Settings.from_env()


def reset_settings_cache() -> None:
    """Reset cached settings (useful in tests)."""
    get_settings.cache_clear()  # type: ignore[attr-defined]


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
