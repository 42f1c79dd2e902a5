"""
Configuration settings for the crit roller.
Values come from the environment (or a .env file) and may be overridden per call.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from typing import Any

from dotenv import load_dotenv

from .models import CriticalPolicy

# Load environment variables from .env file
load_dotenv()


@dataclass(frozen=True)
class Settings:
    crit_behavior: CriticalPolicy = CriticalPolicy.REROLL
    log_level: str = "INFO"


def load_settings() -> Settings:
    return Settings(
        crit_behavior=CriticalPolicy.coerce(os.getenv("CRIT_BEHAVIOR", CriticalPolicy.REROLL.value)),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def get_settings(overrides: Settings | Mapping[str, Any] | None = None) -> Settings:
    """Return the configured settings, with ``overrides`` merged on top.

    A Settings instance is used as-is; a mapping only replaces the keys it names.
    """
    if isinstance(overrides, Settings):
        return overrides

    settings = load_settings()
    if not overrides:
        return settings

    known = {f.name for f in fields(Settings)}
    changes = {k: v for k, v in overrides.items() if k in known and v is not None}
    if "crit_behavior" in changes:
        changes["crit_behavior"] = CriticalPolicy.coerce(changes["crit_behavior"])
    return replace(settings, **changes)
