"""Data models for lxcctl."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, NamedTuple, Optional


class ContainerStatus(str, Enum):
    UNKNOWN = "unknown"
    STOPPED = "stopped"
    RUNNING = "running"


class Validation(str, Enum):
    VALID = "valid"
    INVALID = "invalid"
    INVALID_ARGUMENT = "invalid_argument"

    def __bool__(self) -> bool:
        return self is Validation.VALID


class PrivilegeResult(str, Enum):
    CONFIGURED = "configured"
    SKIPPED = "skipped"


class RetryPolicy(NamedTuple):
    max_attempts: int
    delay: float
    stabilization_delay: float = 0.0


@dataclass(frozen=True)
class ConfigDirective:
    key: str
    value: str
    # False: leave an existing value for this key untouched (append-if-absent).
    overwrite: bool = True

    @property
    def line(self) -> str:
        return f"{self.key}: {self.value}"


@dataclass(frozen=True)
class IdentifierRule:
    first: int
    last: int
    action: str  # "warn" or "skip"
    message: str = ""
    override_env: Optional[str] = None
    override_active: bool = False

    def matches(self, ctid: int) -> bool:
        return self.first <= ctid <= self.last


@dataclass
class PrivilegePolicy:
    directives: List[ConfigDirective] = field(default_factory=list)
    rules: List[IdentifierRule] = field(default_factory=list)

    def rules_for(self, ctid: int) -> List[IdentifierRule]:
        return [rule for rule in self.rules if rule.matches(ctid)]


@dataclass
class ReconcilerConfig:
    pct_bin: str
    lxc_config_dir: Path
    lock_dir: Path
    definitions_path: Path
    log_file: Optional[Path]
    verbose: bool
    quiet: bool
    pct_timeout: int
    exec_policy: RetryPolicy
    start_policy: RetryPolicy
    stop_policy: RetryPolicy
    privilege_policy: PrivilegePolicy
