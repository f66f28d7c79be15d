"""Pytest bootstrap for local source imports and shared test hygiene.

Makes ``import tidymac`` resolve to this checkout even when the ``pytest``
console script starts with the repository root off ``sys.path``, and
isolates each test from buffered key bytes and tidymac environment switches.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

REPO_ROOT = str(Path(__file__).resolve().parent.parent)
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

TIDYMAC_SWITCHES = (
    "TIDYMAC_MANAGED_ALT_SCREEN",
    "TIDYMAC_READ_KEY_FORCE_CHAR",
    "TIDYMAC_DEBUG",
    "TIDYMAC_MENU_SORT_DEFAULT",
)


@pytest.fixture(autouse=True)
def clean_key_state(monkeypatch):
    from tidymac import input as input_mod

    for name in TIDYMAC_SWITCHES:
        monkeypatch.delenv(name, raising=False)
    input_mod._PENDING_BYTES.clear()
    yield
    input_mod._PENDING_BYTES.clear()
