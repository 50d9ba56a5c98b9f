"""User settings stored as JSON under the XDG config directory."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from .coordinator import PropagationPolicy
from .dates import DEFAULT_DURATION_DAYS, HOURS_PER_DAY

logger = logging.getLogger(__name__)

APP_NAME = "gantt_scheduler"


def config_dir() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    return Path(base) / APP_NAME


def state_dir() -> Path:
    base = os.environ.get("XDG_STATE_HOME", os.path.expanduser("~/.local/state"))
    return Path(base) / APP_NAME


@dataclass
class Settings:
    propagation_policy: PropagationPolicy = PropagationPolicy.SINGLE_HOP
    default_duration_days: float = DEFAULT_DURATION_DAYS
    hours_per_day: float = HOURS_PER_DAY
    export_dir: Optional[str] = None
    window_width: int = 1200
    window_height: int = 700

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["propagation_policy"] = self.propagation_policy.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        settings = cls()
        known = {f.name for f in fields(cls)}
        for key, value in data.items():
            if key not in known:
                continue
            if key == "propagation_policy":
                value = PropagationPolicy.parse(value)
            elif key in ("default_duration_days", "hours_per_day"):
                try:
                    value = float(value)
                except (TypeError, ValueError):
                    continue
                if value <= 0:
                    continue
            elif key in ("window_width", "window_height"):
                try:
                    value = int(value)
                except (TypeError, ValueError):
                    continue
            setattr(settings, key, value)
        return settings


def settings_file() -> Path:
    return config_dir() / "settings.json"


def load_settings(path: Optional[Path] = None) -> Settings:
    target = path or settings_file()
    if not target.exists():
        return Settings()
    try:
        data = json.loads(target.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable settings file %s: %s", target, exc)
        return Settings()
    if not isinstance(data, dict):
        return Settings()
    return Settings.from_dict(data)


def save_settings(settings: Settings, path: Optional[Path] = None) -> Path:
    target = path or settings_file()
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(settings.to_dict(), indent=2), encoding="utf-8")
    return target
