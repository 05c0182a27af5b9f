"""Configuration loading and environment variable parsing for lxcctl."""

from __future__ import annotations

import dataclasses
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from lxcctl.constants import (
    _LOG_VERBOSE,
    DEFAULT_DEFINITIONS_PATH,
    DEFAULT_DIRECTIVES,
    DEFAULT_RULES,
    EXEC_POLICY,
    LOCK_DIR,
    LXC_CONFIG_DIR,
    PCT_BIN,
    START_POLICY,
    STOP_POLICY,
)
from lxcctl.exceptions import ConfigError
from lxcctl.models import ConfigDirective, IdentifierRule, PrivilegePolicy, ReconcilerConfig
from lxcctl.utils import get_env, get_env_bool, log, parse_int_env

_RULE_ACTIONS = {"warn", "skip"}


def default_policy() -> PrivilegePolicy:
    return PrivilegePolicy(directives=list(DEFAULT_DIRECTIVES), rules=list(DEFAULT_RULES))


def _parse_directive(entry: Any, index: int) -> ConfigDirective:
    if not isinstance(entry, dict) or "key" not in entry or "value" not in entry:
        raise ConfigError(f"Policy directive #{index} must be a mapping with 'key' and 'value'")
    key = str(entry["key"]).strip()
    if not key or any(ch.isspace() for ch in key) or ":" in key:
        raise ConfigError(f"Policy directive #{index} has an invalid key '{entry['key']}'")
    return ConfigDirective(key=key, value=str(entry["value"]).strip(), overwrite=bool(entry.get("overwrite", True)))


def _parse_rule(entry: Any, index: int) -> IdentifierRule:
    if not isinstance(entry, dict) or "first" not in entry:
        raise ConfigError(f"Policy rule #{index} must be a mapping with at least 'first'")
    try:
        first = int(entry["first"])
        last = int(entry.get("last", first))
    except (TypeError, ValueError):
        raise ConfigError(f"Policy rule #{index}: 'first'/'last' must be integers")
    if last < first:
        raise ConfigError(f"Policy rule #{index}: last ({last}) is below first ({first})")
    action = str(entry.get("action", "")).strip().lower()
    if action not in _RULE_ACTIONS:
        raise ConfigError(f"Policy rule #{index}: unsupported action '{action}'. Supported: warn, skip")
    override_env = entry.get("override_env")
    return IdentifierRule(
        first=first,
        last=last,
        action=action,
        message=str(entry.get("message", "")),
        override_env=str(override_env) if override_env else None,
    )


def load_privilege_policy(path: Optional[Path] = None) -> PrivilegePolicy:
    """Load directives and identifier rules from YAML, falling back to built-in defaults.

    A file may override either list independently; an absent key keeps the
    default for that list.
    """
    if path is None:
        return default_policy()
    if not path.exists():
        raise ConfigError(f"Privilege policy file missing: {path}")
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Privilege policy {path} contains invalid YAML: {exc}")
    if not isinstance(data, dict):
        raise ConfigError(f"Privilege policy {path} must contain a YAML mapping")

    policy = default_policy()
    if "directives" in data:
        policy.directives = [_parse_directive(item, i) for i, item in enumerate(data["directives"] or [], 1)]
        keys = [d.key for d in policy.directives]
        duplicates = sorted({k for k in keys if keys.count(k) > 1})
        if duplicates:
            raise ConfigError(f"Privilege policy {path} repeats directive keys: {', '.join(duplicates)}")
    if "rules" in data:
        policy.rules = [_parse_rule(item, i) for i, item in enumerate(data["rules"] or [], 1)]
    return policy


def resolve_overrides(policy: PrivilegePolicy) -> PrivilegePolicy:
    """Read each rule's override flag from the environment once."""
    rules: List[IdentifierRule] = []
    for rule in policy.rules:
        if rule.override_env:
            active = get_env_bool(rule.override_env, False)
            if active:
                log("INFO", f"{rule.override_env} is set; rule for {rule.first}-{rule.last} overridden")
            rule = dataclasses.replace(rule, override_active=active)
        rules.append(rule)
    return PrivilegePolicy(directives=list(policy.directives), rules=rules)


def load_container_definitions(path: Optional[Path] = None) -> Dict[str, Any]:
    """Return the ``lxc_configs`` mapping (container ID string -> definition)."""
    if path is None:
        path = DEFAULT_DEFINITIONS_PATH
    if not path.exists():
        raise ConfigError(f"Container definitions file missing: {path}")
    try:
        data = json.loads(path.read_text())
    except ValueError as exc:
        raise ConfigError(f"Container definitions {path} contain invalid JSON: {exc}")
    configs = data.get("lxc_configs") if isinstance(data, dict) else None
    if not isinstance(configs, dict):
        raise ConfigError(f"Container definitions {path} have no 'lxc_configs' mapping")
    return configs


def gpu_assignment_for(definitions: Dict[str, Any], ctid: int) -> str:
    entry = definitions.get(str(ctid))
    if not isinstance(entry, dict):
        return "none"
    value = entry.get("gpu_assignment")
    return "none" if value is None else str(value)


def parse_env() -> ReconcilerConfig:
    pct_bin = (get_env("PCT_BIN") or PCT_BIN).strip() or PCT_BIN
    lxc_config_dir = Path(get_env("LXC_CONFIG_DIR") or str(LXC_CONFIG_DIR))
    lock_dir = Path(get_env("LOCK_DIR") or str(LOCK_DIR))
    definitions_path = Path(get_env("LXC_DEFINITIONS") or str(DEFAULT_DEFINITIONS_PATH))

    log_file_raw = (get_env("LOG_FILE") or "").strip()
    log_file = Path(log_file_raw) if log_file_raw else None

    stabilization = parse_int_env("STABILIZATION_DELAY", str(int(START_POLICY.stabilization_delay)), min_val=0)
    pct_timeout = parse_int_env("PCT_TIMEOUT", "0", min_val=0)

    policy_raw = (get_env("PRIVILEGE_POLICY") or "").strip()
    policy = load_privilege_policy(Path(policy_raw) if policy_raw else None)

    return ReconcilerConfig(
        pct_bin=pct_bin,
        lxc_config_dir=lxc_config_dir,
        lock_dir=lock_dir,
        definitions_path=definitions_path,
        log_file=log_file,
        verbose=get_env_bool("LOG_VERBOSE", _LOG_VERBOSE),
        quiet=get_env_bool("QUIET_MODE", False),
        pct_timeout=pct_timeout,
        exec_policy=EXEC_POLICY._replace(stabilization_delay=float(stabilization)),
        start_policy=START_POLICY._replace(stabilization_delay=float(stabilization)),
        stop_policy=STOP_POLICY,
        privilege_policy=resolve_overrides(policy),
    )
