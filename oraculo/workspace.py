"""Workspace root, settings and path helpers for Oraculo.

Layout under the workspace root:

    settings.yaml         user settings (timezone, horizon limits)
    data/oraculo.json     the persisted document
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from oraculo.models import DEFAULT_CAPACITIES, HORIZON_ORDER, INTAKE, WEEKLY

logger = logging.getLogger(__name__)


def workspace_root() -> Path:
    """Workspace directory, from ORACULO_ROOT or ~/oraculo."""
    return Path(
        os.environ.get("ORACULO_ROOT", str(Path.home() / "oraculo"))
    ).expanduser().resolve()


def settings_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "settings.yaml"


def document_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "data" / "oraculo.json"


@dataclass
class Settings:
    timezone: str = "UTC"
    capacities: dict[str, int | None] = field(default_factory=lambda: dict(DEFAULT_CAPACITIES))
    default_move_out_horizon: str = WEEKLY

    @property
    def tz(self) -> ZoneInfo:
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("unknown timezone %r, using UTC", self.timezone)
            return ZoneInfo("UTC")

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Settings:
        if not d or not isinstance(d, dict):
            return cls()
        caps = dict(DEFAULT_CAPACITIES)
        for hid, cap in (d.get("capacities") or {}).items():
            if hid not in HORIZON_ORDER or hid == INTAKE:
                logger.warning("ignoring capacity for unknown horizon %r", hid)
                continue
            if not isinstance(cap, int) or cap < 1:
                logger.warning("ignoring invalid capacity %r for %s", cap, hid)
                continue
            caps[hid] = cap
        move_out = str(d.get("default_move_out_horizon", WEEKLY))
        if move_out not in HORIZON_ORDER:
            move_out = WEEKLY
        return cls(
            timezone=str(d.get("timezone", "UTC")),
            capacities=caps,
            default_move_out_horizon=move_out,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timezone": self.timezone,
            "capacities": {h: c for h, c in self.capacities.items() if h != INTAKE},
            "default_move_out_horizon": self.default_move_out_horizon,
        }


def load_settings(root: Path | None = None) -> Settings:
    """Read settings.yaml, falling back to defaults when missing or broken."""
    path = settings_path(root)
    if not path.exists():
        return Settings()
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        logger.warning("could not read %s: %s", path, e)
        return Settings()
    return Settings.from_dict(data if isinstance(data, dict) else {})
