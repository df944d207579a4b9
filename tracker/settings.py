# tracker/settings.py
"""
Runtime settings for a tracking session.

Settings are mutable while audio is flowing; the session reads them fresh
on every frame.
"""

from __future__ import annotations
from dataclasses import asdict, dataclass, fields
import json
import logging
import os

from analysis.mapping import DEFAULT_MAPPING, MAPPING_METHODS
from analysis.mapping_config import NUM_FILTER_BANKS
from analysis.smoothing import DEFAULT_WINDOW

logger = logging.getLogger(__name__)


@dataclass
class SessionSettings:
    min_hz: float = 0.0
    max_hz: float = 8000.0
    smoothing: int = DEFAULT_WINDOW
    normalize_features: bool = False
    mapping: str = DEFAULT_MAPPING
    filter_banks: int = NUM_FILTER_BANKS

    def __post_init__(self):
        self._validate(asdict(self))

    @staticmethod
    def _validate(values: dict):
        min_hz = float(values["min_hz"])
        max_hz = float(values["max_hz"])
        if min_hz < 0 or max_hz <= min_hz:
            raise ValueError(f"invalid frequency band {min_hz}-{max_hz} Hz")

        smoothing = values["smoothing"]
        if isinstance(smoothing, bool) or int(smoothing) != smoothing or smoothing < 1:
            raise ValueError(f"smoothing must be an integer >= 1, got {smoothing!r}")

        if not isinstance(values["normalize_features"], bool):
            raise ValueError("normalize_features must be a boolean")

        if values["mapping"] not in MAPPING_METHODS:
            raise ValueError(
                f"unknown mapping {values['mapping']!r}; "
                f"choose one of {sorted(MAPPING_METHODS)}"
            )

        banks = values["filter_banks"]
        if isinstance(banks, bool) or int(banks) != banks or banks < 1:
            raise ValueError(f"filter_banks must be a positive integer, got {banks!r}")

    def update(self, **changes) -> "SessionSettings":
        """Validate and apply ``changes`` together; nothing is applied on error."""
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"unknown settings: {sorted(unknown)}")

        merged = {**asdict(self), **changes}
        self._validate(merged)
        for key, value in changes.items():
            setattr(self, key, value)
        logger.debug("settings updated: %s", changes)
        return self

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "SessionSettings":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"unknown settings: {sorted(unknown)}")
        return cls(**data)


def load_settings(path) -> SessionSettings:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    settings = SessionSettings.from_dict(data)
    logger.info("Loaded settings from %s", path)
    return settings


def save_settings(settings: SessionSettings, path) -> None:
    tmp = f"{path}.tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(settings.to_dict(), f, indent=2)
    os.replace(tmp, path)
