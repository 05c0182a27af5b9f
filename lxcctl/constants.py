"""Global constants and path configuration for lxcctl."""

from __future__ import annotations

import os
import re
from pathlib import Path

from lxcctl.models import ConfigDirective, IdentifierRule, RetryPolicy

PCT_BIN = "pct"
LXC_CONFIG_DIR = Path("/etc/pve/lxc")
LOCK_DIR = Path("/run/lxcctl")
DEFAULT_DEFINITIONS_PATH = Path("/usr/local/etc/phoenix_lxc_configs.json")
BACKUP_SUFFIX = ".bak"
TRUTHY = {"1", "true", "yes", "on"}

# Seconds; 0 means no timeout on individual pct calls.
PCT_TIMEOUT = 0

EXEC_POLICY = RetryPolicy(max_attempts=3, delay=10.0, stabilization_delay=10.0)
START_POLICY = RetryPolicy(max_attempts=5, delay=5.0, stabilization_delay=10.0)
STOP_POLICY = RetryPolicy(max_attempts=3, delay=10.0, stabilization_delay=0.0)

# `true` exists in every container image we manage and has no side effects.
RESPONSIVE_COMMAND = ("true",)

STATUS_LINE_RE = re.compile(r"^status:\s*(\S+)\s*$", re.MULTILINE)
GPU_ASSIGNMENT_RE = re.compile(r"none|all|[0-9]+(,[0-9]+)*")
DIRECTIVE_LINE_RE = re.compile(r"^\s*([A-Za-z0-9_.\-]+)\s*[:=]\s*(.*?)\s*$")
SECTION_HEADER_RE = re.compile(r"^\s*\[[^\]]+\]\s*$")

DEFAULT_DIRECTIVES = (
    ConfigDirective(key="unprivileged", value="0", overwrite=True),
    ConfigDirective(key="lxc.apparmor.profile", value="unconfined", overwrite=False),
    ConfigDirective(key="lxc.start.timeout", value="300", overwrite=False),
)

DEFAULT_RULES = (
    IdentifierRule(
        first=900,
        last=902,
        action="warn",
        message="Container {ctid} (agent) may require GPU access. Ensure device passthrough is configured if needed.",
    ),
    IdentifierRule(
        first=999,
        last=999,
        action="skip",
        message="Container {ctid} (server) does not require privileged mode; skipping.",
        override_env="FORCE_PRIVILEGED_999",
    ),
)

_LOG_VERBOSE = os.environ.get("LOG_VERBOSE", "").lower() in TRUTHY

LEVEL_COLOURS = {
    "INFO": "\033[0;34m",
    "WARN": "\033[1;33m",
    "ERROR": "\033[0;31m",
    "SUCCESS": "\033[0;32m",
    "DEBUG": "\033[0;90m",
}
