"""Configuration: environment settings, logging, and runtime story settings.

Environment (read once at startup, .env supported):

    DATA_DIR                  data directory (default ./data)
    TALECRAFT_LOG_LEVEL       logging level (default INFO)
    LLM_PROVIDER_URL          AI story backend; AI stories are off when empty
    LLM_API_KEY, LLM_PROVIDER_FORMAT, LLM_MODEL
    ECONOMY_URL               economy backend; rewards are only logged when empty
    ECONOMY_API_KEY
    SESSION_CONFLICT          "replace" or "reject"
    SESSION_CLEANUP_SECONDS   interval of the expired-session sweep (default 300)

Runtime settings live in {data_dir}/config.json and can be changed through
PATCH /api/settings without a restart.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Literal

from dotenv import load_dotenv
from pydantic import BaseModel

ROOT = Path(__file__).parent.parent
DEFAULT_DATA_DIR = ROOT / "data"

_data_dir: Path | None = None


class Settings(BaseModel):
    data_dir: Path = DEFAULT_DATA_DIR
    log_level: str = "INFO"
    llm_provider_url: str = ""
    llm_api_key: str = ""
    llm_provider_format: Literal["koboldcpp", "openai", "openai-chat"] = "openai-chat"
    llm_model: str = ""
    economy_url: str = ""
    economy_api_key: str = ""
    session_conflict: Literal["replace", "reject"] = "replace"
    session_cleanup_seconds: float = 300


def load_settings(env_file: Path | None = None) -> Settings:
    """Build Settings from the environment, after loading .env."""
    load_dotenv(env_file or ROOT / ".env")
    env = {
        "data_dir": os.getenv("DATA_DIR"),
        "log_level": os.getenv("TALECRAFT_LOG_LEVEL"),
        "llm_provider_url": os.getenv("LLM_PROVIDER_URL"),
        "llm_api_key": os.getenv("LLM_API_KEY"),
        "llm_provider_format": os.getenv("LLM_PROVIDER_FORMAT"),
        "llm_model": os.getenv("LLM_MODEL"),
        "economy_url": os.getenv("ECONOMY_URL"),
        "economy_api_key": os.getenv("ECONOMY_API_KEY"),
        "session_conflict": os.getenv("SESSION_CONFLICT"),
        "session_cleanup_seconds": os.getenv("SESSION_CLEANUP_SECONDS"),
    }
    return Settings(**{k: v for k, v in env.items() if v})


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# Runtime story settings (config.json)
# ---------------------------------------------------------------------------

_CONFIG_DEFAULTS: dict[str, Any] = {
    "ai_story_enabled": False,
    "ai_story_chance_percent": 50,
    "resume_window_minutes": 720,
}


def init_config(data_dir: Path) -> None:
    global _data_dir
    _data_dir = data_dir
    _data_dir.mkdir(parents=True, exist_ok=True)


def _config_path() -> Path:
    assert _data_dir is not None, "Call init_config() before using config"
    return _data_dir / "config.json"


def _validate(fields: dict[str, Any]) -> dict[str, Any]:
    clean: dict[str, Any] = {}
    if "ai_story_enabled" in fields:
        clean["ai_story_enabled"] = bool(fields["ai_story_enabled"])
    if "ai_story_chance_percent" in fields:
        clean["ai_story_chance_percent"] = min(100, max(0, int(fields["ai_story_chance_percent"])))
    if "resume_window_minutes" in fields:
        clean["resume_window_minutes"] = max(1, int(fields["resume_window_minutes"]))
    return clean


def get_config() -> dict[str, Any]:
    """Read config, returning defaults merged with stored values."""
    config = dict(_CONFIG_DEFAULTS)
    path = _config_path()
    if path.is_file():
        config.update(_validate(json.loads(path.read_text())))
    return config


def update_config(fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into config and persist. Returns full config.

    Unknown keys are ignored; the chance is clamped to 0-100.
    """
    config = get_config()
    config.update(_validate(fields))
    _config_path().write_text(json.dumps(config, indent=2))
    return config
