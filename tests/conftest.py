"""Shared test fixtures: a scripted platform and sleep capture."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence

import pytest

from lxcctl.exceptions import PlatformError
from lxcctl.executor import CommandExecutor
from lxcctl.lifecycle import LifecycleReconciler
from lxcctl.platform import Platform
from lxcctl.utils import Logger


class FakePlatform(Platform):
    """In-memory container manager.

    ``state`` is what ``pct status`` reports unless ``status_script`` still has
    entries. ``start_failures``/``stop_failures`` make that many calls raise.
    ``exec_results`` is consumed per exec call (default: success); an entry may
    be a callable taking the platform and returning a bool.
    """

    def __init__(self, state: str = "running", config_dir: Optional[Path] = None) -> None:
        self.state = state
        self.config_dir = config_dir or Path("/nonexistent")
        self.status_script: List[Optional[str]] = []
        self.start_failures = 0
        self.stop_failures = 0
        self.exec_results: List = []
        self.exists = True
        self.calls: List[tuple] = []

    def query_status(self, ctid: int) -> str:
        self.calls.append(("status", ctid))
        if self.status_script:
            raw = self.status_script.pop(0)
        else:
            raw = f"status: {self.state}\n"
        if raw is None:
            raise PlatformError(f"pct status {ctid} failed")
        return raw

    def start(self, ctid: int) -> None:
        self.calls.append(("start", ctid))
        if self.start_failures > 0:
            self.start_failures -= 1
            raise PlatformError(f"pct start {ctid} failed")
        self.state = "running"

    def stop(self, ctid: int) -> None:
        self.calls.append(("stop", ctid))
        if self.stop_failures > 0:
            self.stop_failures -= 1
            raise PlatformError(f"pct stop {ctid} failed")
        self.state = "stopped"

    def exec(self, ctid: int, command: Sequence[str]) -> bool:
        self.calls.append(("exec", ctid, tuple(command)))
        if self.state != "running":
            return False
        if not self.exec_results:
            return True
        result = self.exec_results.pop(0)
        if callable(result):
            return bool(result(self))
        return bool(result)

    def config_exists(self, ctid: int) -> bool:
        self.calls.append(("config", ctid))
        return self.exists

    def config_path(self, ctid: int) -> Path:
        return self.config_dir / f"{ctid}.conf"

    def count(self, op: str) -> int:
        return sum(1 for call in self.calls if call[0] == op)

    def ops(self) -> List[str]:
        return [call[0] for call in self.calls if call[0] != "status"]


@pytest.fixture(autouse=True)
def sleeps(monkeypatch) -> List[float]:
    """Record every time.sleep call instead of sleeping."""
    recorded: List[float] = []
    monkeypatch.setattr("time.sleep", lambda seconds: recorded.append(seconds))
    return recorded


@pytest.fixture
def logger() -> Logger:
    return Logger(verbose=True)


@pytest.fixture
def platform(tmp_path) -> FakePlatform:
    return FakePlatform(config_dir=tmp_path)


@pytest.fixture
def reconciler(platform, logger) -> LifecycleReconciler:
    return LifecycleReconciler(platform, logger=logger)


@pytest.fixture
def executor(reconciler) -> CommandExecutor:
    return CommandExecutor(reconciler)


@pytest.fixture
def clean_env(monkeypatch):
    """Clear every environment variable parse_env() reads."""
    for key in _PARSE_ENV_VARS:
        monkeypatch.delenv(key, raising=False)


_PARSE_ENV_VARS = [
    "PCT_BIN",
    "LXC_CONFIG_DIR",
    "LOCK_DIR",
    "LXC_DEFINITIONS",
    "LOG_FILE",
    "LOG_VERBOSE",
    "QUIET_MODE",
    "STABILIZATION_DELAY",
    "PCT_TIMEOUT",
    "PRIVILEGE_POLICY",
    "FORCE_PRIVILEGED_999",
]



FAKE_PCT = """#!/bin/sh
case "$1" in
  status) printf 'status: running\\n\\377\\376\\n' ;;
  exec) shift 3; exec "$@" ;;
  *) exit 0 ;;
esac
"""


@pytest.fixture
def fake_pct(tmp_path) -> Path:
    """A ``pct`` executable that reports Running and runs exec'd commands on the host."""
    path = tmp_path / "bin" / "pct"
    path.parent.mkdir()
    path.write_text(FAKE_PCT)
    path.chmod(0o755)
    return path
