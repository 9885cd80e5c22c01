"""
Practice settings files.

A settings file is a YAML (``.yaml``/``.yml``) or JSON mapping whose keys are
session settings, for example:

    mode: arpeggios
    root_note: Eb
    arpeggio_quality: minor7
    arpeggio_octaves: 2
    hand: both

Keys left out keep the session defaults. Values are checked when the file is
loaded, so a typo fails before any MIDI port is opened.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yaml

from session import PracticeSession, validate_settings

logger = logging.getLogger(__name__)


@dataclass
class PracticeSettings:
    values: Dict[str, Any] = field(default_factory=dict)
    source: Optional[str] = None

    def merged(self, overrides: Dict[str, object]) -> "PracticeSettings":
        """A copy with ``overrides`` validated and laid over this file's values."""
        values = dict(self.values)
        values.update(validate_settings(overrides))
        return PracticeSettings(values=values, source=self.source)

    def apply(self, session: PracticeSession) -> None:
        if self.values:
            session.configure(**self.values)


def settings_from_dict(data: object, source: Optional[str] = None) -> PracticeSettings:
    if data is None:
        return PracticeSettings(source=source)
    if not isinstance(data, dict):
        raise ValueError("Settings file must contain a mapping of setting names to values")
    changes = {str(k): v for k, v in data.items()}
    return PracticeSettings(values=validate_settings(changes), source=source)


def load_settings(path: str) -> PracticeSettings:
    with open(path, "r", encoding="utf-8") as f:
        if path.lower().endswith((".yaml", ".yml")):
            data = yaml.safe_load(f)
        else:
            data = json.load(f)
    settings = settings_from_dict(data, source=path)
    logger.info("Loaded %d practice settings from %s", len(settings.values), path)
    return settings
