from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from lab.application.orchestrator import MAX_CONCURRENT
from lab.application.trace_streamer import TAIL_LINES
from lab.domain.errors import ConfigError

DEFAULT_PROJECTS_FILE = Path("~/.config/lab/.projects")
TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class LabConfig:
    """Everything the commands need, validated and with defaults filled in."""
    base_url:       str
    token:          str
    projects_file:  Path
    tail_lines:     int  = TAIL_LINES
    sync_all:       bool = False
    max_concurrent: int  = MAX_CONCURRENT


def normalize_base_url(value: str) -> str:
    """gitlab.example.com/ -> https://gitlab.example.com"""
    url = value.strip()
    if not url.startswith("http"):
        url = "https://" + url
    return url.rstrip("/")


def _int_setting(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
    if value < 0:
        raise ConfigError(f"{name} must not be negative, got {value}")
    return value or default


def projects_file_path(env: Mapping[str, str] | None = None) -> Path:
    """Where synced project paths live. Needs no forge credentials."""
    env = os.environ if env is None else env
    value = env.get("LAB_PROJECTS_FILE", "").strip()
    return Path(value or DEFAULT_PROJECTS_FILE).expanduser()


def load_config(env: Mapping[str, str] | None = None) -> LabConfig:
    """
    Read settings from environment variables.
    Fails fast with a ConfigError if the token or base URL is missing.
    """
    env = os.environ if env is None else env

    token = env.get("GITLAB_TOKEN", "").strip()
    if not token:
        raise ConfigError("GITLAB_TOKEN environment variable is required")

    base_url = env.get("GITLAB_BASE_URL", "").strip()
    if not base_url:
        raise ConfigError("GITLAB_BASE_URL environment variable is required")

    return LabConfig(
        base_url       = normalize_base_url(base_url),
        token          = token,
        projects_file  = projects_file_path(env),
        tail_lines     = _int_setting(env, "LAB_TAIL_LINES", TAIL_LINES),
        sync_all       = env.get("LAB_SYNC_ALL", "").strip().lower() in TRUE_VALUES,
        max_concurrent = _int_setting(env, "LAB_MAX_CONCURRENT", MAX_CONCURRENT),
    )
