"""Utility functions for lxcctl."""

from __future__ import annotations

import os
import subprocess
import time
from pathlib import Path
from typing import List, Optional, Sequence, Union

from lxcctl.constants import _LOG_VERBOSE, LEVEL_COLOURS, TRUTHY
from lxcctl.exceptions import ConfigError, InvalidArgument


class Logger:
    """Coloured console logging with an optional append-only log file.

    Every component receives one of these; none of them checks whether it
    exists. Emitting ERROR never changes control flow.
    """

    def __init__(self, log_file: Optional[Path] = None, verbose: bool = _LOG_VERBOSE, quiet: bool = False) -> None:
        self.log_file = log_file
        self.verbose = verbose
        self.quiet = quiet

    def log(self, level: str, message: str) -> None:
        self._write_file(level, message)
        if level == "DEBUG" and not self.verbose:
            return
        if self.quiet and level in {"INFO", "SUCCESS", "DEBUG"}:
            return
        colour = LEVEL_COLOURS.get(level, "")
        reset = "\033[0m" if colour else ""
        print(f"{colour}[{level}]{reset} {message}", flush=True)

    def _write_file(self, level: str, message: str) -> None:
        if self.log_file is None:
            return
        stamp = time.strftime("%Y-%m-%d %H:%M:%S %Z")
        try:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_file, "a") as f:
                f.write(f"[{stamp}] [{level}] {message}\n")
        except OSError:
            pass

    def debug(self, message: str) -> None:
        self.log("DEBUG", message)

    def info(self, message: str) -> None:
        self.log("INFO", message)

    def warn(self, message: str) -> None:
        self.log("WARN", message)

    def error(self, message: str) -> None:
        self.log("ERROR", message)

    def success(self, message: str) -> None:
        self.log("SUCCESS", message)


_default_logger = Logger()


def log(level: str, message: str) -> None:
    """Log through the process-wide default logger."""
    _default_logger.log(level, message)


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def get_env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.lower() in TRUTHY


def parse_int_env(name: str, default: str, min_val: int = 1, max_val: Optional[int] = None) -> int:
    raw = get_env(name, default)
    assert raw is not None
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer (got '{raw}')")
    if value < min_val:
        raise ConfigError(f"{name} must be >= {min_val} (got {value})")
    if max_val is not None and value > max_val:
        raise ConfigError(f"{name} must be <= {max_val} (got {value})")
    return value


def require_ctid(ctid: Union[int, str, None], operation: str) -> int:
    """Normalize a container ID, rejecting missing or non-positive values."""
    if ctid is None or (isinstance(ctid, str) and not ctid.strip()):
        raise InvalidArgument(f"{operation}: Container ID is required", operation=operation)
    if isinstance(ctid, bool):
        raise InvalidArgument(f"{operation}: Invalid container ID {ctid!r}", operation=operation)
    try:
        value = int(str(ctid).strip())
    except ValueError:
        raise InvalidArgument(f"{operation}: Invalid container ID {ctid!r}", operation=operation)
    if value <= 0:
        raise InvalidArgument(f"{operation}: Container ID must be positive (got {value})", operation=operation)
    return value


def require_command(command: Optional[Sequence[str]], operation: str) -> List[str]:
    if not command or isinstance(command, str):
        raise InvalidArgument(f"{operation}: Command is required", operation=operation)
    return [str(arg) for arg in command]


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def run(cmd: List[str], check: bool = True, **kwargs) -> subprocess.CompletedProcess:
    """Run command with logging."""
    log("DEBUG", f"Running: {' '.join(cmd)}")
    result = subprocess.run(cmd, check=check, text=True, **kwargs)
    return result
