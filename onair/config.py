"""
onair.config — YAML Configuration Loader
=========================================

This module reads ``config.yaml`` for **infrastructure-only** settings
(station identity, API port, streaming server endpoint, role bootstrap).
Engagement tuning values (thresholds, chat limits, cache windows) live in
the ``settings`` database table and are read through
:class:`~onair.engine.cache.SettingsCache`.

Usage::

    from onair.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.station_name)      # "Track Trip Radio"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object — infrastructure/identity only.
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class OnAirConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    station_name: str
    station_tagline: str

    # API
    api_port: int

    # Streaming server endpoint reporting the current track
    now_playing_url: str

    # Role store bootstrap, inserted into the DB on startup and never removed
    bootstrap_admin_user_ids: tuple[str, ...] = field(default_factory=tuple)
    bootstrap_artist_emails: tuple[str, ...] = field(default_factory=tuple)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> OnAirConfig:
    """Read *path* and return an :class:`OnAirConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return OnAirConfig(
        station_name=raw["station_name"],
        station_tagline=raw.get("station_tagline", ""),
        api_port=int(raw["api_port"]),
        now_playing_url=raw["now_playing_url"],
        bootstrap_admin_user_ids=tuple(
            str(uid) for uid in raw.get("bootstrap_admin_user_ids") or ()
        ),
        bootstrap_artist_emails=tuple(
            str(email).strip().lower()
            for email in raw.get("bootstrap_artist_emails") or ()
        ),
    )
