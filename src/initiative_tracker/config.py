"""Configuration loading, validation and logging setup."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List

from dotenv import dotenv_values
from pydantic import BaseModel, field_validator


def _runtime_home() -> Path:
    override = str(os.getenv("INITIATIVE_TRACKER_HOME", "") or "").strip()
    if override:
        return Path(override).expanduser().resolve()
    return Path(__file__).resolve().parents[2]


DEFAULT_CONFIG_HOME = _runtime_home()
ENV_PATH = DEFAULT_CONFIG_HOME / ".env"
ENV_EXAMPLE_PATH = DEFAULT_CONFIG_HOME / ".env.example"

_PATH_SETTING_KEYS = {"BOARD_PATH"}
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _candidate_env_example_paths() -> List[Path]:
    out: List[Path] = [ENV_EXAMPLE_PATH]
    # Useful for local/dev runs (in case working dir differs).
    try:
        out.append(Path.cwd() / ".env.example")
    except OSError:
        pass

    seen: set[str] = set()
    uniq: List[Path] = []
    for path in out:
        key = str(path)
        if key in seen:
            continue
        seen.add(key)
        uniq.append(path)
    return uniq


def _strip_inline_comment(value: object) -> str:
    """
    Values such as ``LOG_LEVEL=INFO  # DEBUG|INFO`` may keep the comment
    depending on the python-dotenv version, so drop it explicitly.
    """
    txt = str(value or "").strip()
    if " #" in txt:
        txt = txt.split(" #", 1)[0].strip()
    return txt


def _coerce_str(value: object) -> str:
    return str(value or "").strip()


def config_home() -> Path:
    return ENV_PATH.expanduser().resolve().parent


def _resolve_runtime_path(raw: str) -> str:
    txt = _coerce_str(raw)
    if not txt:
        return ""
    path = Path(txt).expanduser()
    if not path.is_absolute():
        path = config_home() / path
    return str(path.resolve())


class Settings(BaseModel):
    APP_TITLE: str = "Initiative Tracker Dashboard"
    BOARD_PATH: str = "data/board.json"
    EXPORT_FILENAME_PREFIX: str = "initiatives"
    LOG_LEVEL: str = "INFO"

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_level(cls, value: object) -> str:
        level = _strip_inline_comment(value).upper() or "INFO"
        if level not in _LOG_LEVELS:
            return "INFO"
        return level


def ensure_env() -> None:
    ENV_PATH.parent.mkdir(parents=True, exist_ok=True)
    if not ENV_PATH.exists():
        example_path = next((p for p in _candidate_env_example_paths() if p.exists()), None)
        if example_path is not None:
            ENV_PATH.write_text(example_path.read_text(encoding="utf-8"), encoding="utf-8")
            return
        ENV_PATH.write_text("", encoding="utf-8")


def load_settings() -> Settings:
    vals = {k: v for k, v in dotenv_values(ENV_PATH).items() if v is not None}
    settings = Settings.model_validate(vals)

    payload = settings.model_dump()
    for key in _PATH_SETTING_KEYS:
        payload[key] = _resolve_runtime_path(str(payload.get(key) or ""))
    return Settings.model_validate(payload)


def configure_logging(settings: Settings) -> None:
    level = logging.getLevelName(settings.LOG_LEVEL)
    logging.basicConfig(level=level, format=_LOG_FORMAT)
    logging.getLogger("initiative_tracker").setLevel(level)
