"""Persistent JSON config helpers and environment switches.

Stores menu defaults, keepalive timings, scan roots, and command actions.
All access is defensive: malformed or missing config falls back safely.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from platformdirs import user_config_dir

APP_NAME = "tidymac"
CONFIG_FILENAME = "config.json"
CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME

ENV_MANAGED_ALT_SCREEN = "TIDYMAC_MANAGED_ALT_SCREEN"
ENV_FORCE_CHAR = "TIDYMAC_READ_KEY_FORCE_CHAR"
ENV_DEBUG = "TIDYMAC_DEBUG"
ENV_SORT_DEFAULT = "TIDYMAC_MENU_SORT_DEFAULT"

SORT_MODES = ("date", "name", "size")
DEFAULT_PAGE_SIZE = 10
DEFAULT_SCAN_ROOTS = ("~/Library/Caches", "~/Library/Logs")


@dataclass(frozen=True)
class KeepaliveTimings:
    """Delays (seconds) and retry bound for the credential renewal loop.

    ``interval`` must stay below the sudo timestamp timeout (5 minutes by
    default on macOS).
    """

    initial_delay: float = 2.0
    interval: float = 30.0
    retry_delay: float = 5.0
    max_retries: int = 3


@dataclass(frozen=True)
class CommandAction:
    argv: tuple[str, ...]
    sudo: bool = False


@dataclass(frozen=True)
class Settings:
    page_size: int = DEFAULT_PAGE_SIZE
    sort_default: str = "date"
    scan_roots: tuple[str, ...] = DEFAULT_SCAN_ROOTS
    keepalive: KeepaliveTimings = field(default_factory=KeepaliveTimings)
    actions: dict[str, CommandAction] = field(default_factory=dict)


def env_flag(name: str) -> bool:
    """Return whether environment switch ``name`` is set to ``1``/``true``."""
    return os.environ.get(name, "").strip().lower() in {"1", "true", "yes"}


def load_config() -> dict[str, object]:
    """Load the persisted JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    try:
        data = json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
    except Exception:
        return {}
    return data if isinstance(data, dict) else {}


def _positive_number(value: object, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value) if value > 0 else default


def _load_keepalive(raw: object) -> KeepaliveTimings:
    """Read keepalive timings, keeping defaults for absent or invalid keys."""
    defaults = KeepaliveTimings()
    if not isinstance(raw, dict):
        return defaults
    retries = raw.get("max_retries")
    if isinstance(retries, bool) or not isinstance(retries, int) or retries < 1:
        retries = defaults.max_retries
    return KeepaliveTimings(
        initial_delay=_positive_number(raw.get("initial_delay"), defaults.initial_delay),
        interval=_positive_number(raw.get("interval"), defaults.interval),
        retry_delay=_positive_number(raw.get("retry_delay"), defaults.retry_delay),
        max_retries=retries,
    )


def _load_actions(raw: object) -> dict[str, CommandAction]:
    """Read ``{"id": {"argv": [...], "sudo": bool}}`` command definitions."""
    if not isinstance(raw, dict):
        return {}
    actions: dict[str, CommandAction] = {}
    for action_id, definition in raw.items():
        if not isinstance(action_id, str) or not isinstance(definition, dict):
            continue
        argv = definition.get("argv")
        if not isinstance(argv, list) or not argv or not all(isinstance(arg, str) for arg in argv):
            continue
        actions[action_id] = CommandAction(argv=tuple(argv), sudo=definition.get("sudo") is True)
    return actions


def load_settings() -> Settings:
    """Build effective settings from the config file and environment.

    ``TIDYMAC_MENU_SORT_DEFAULT`` overrides the persisted sort default.
    """
    data = load_config()

    page_size = data.get("page_size")
    if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size < 1:
        page_size = DEFAULT_PAGE_SIZE

    sort_default = os.environ.get(ENV_SORT_DEFAULT) or data.get("sort_default")
    if sort_default not in SORT_MODES:
        sort_default = "date"

    roots = data.get("scan_roots")
    if isinstance(roots, list) and roots and all(isinstance(root, str) for root in roots):
        scan_roots = tuple(roots)
    else:
        scan_roots = DEFAULT_SCAN_ROOTS

    return Settings(
        page_size=page_size,
        sort_default=sort_default,
        scan_roots=scan_roots,
        keepalive=_load_keepalive(data.get("keepalive")),
        actions=_load_actions(data.get("actions")),
    )

