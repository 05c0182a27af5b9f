"""Tests for lxcctl.config."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from lxcctl.config import (
    default_policy,
    gpu_assignment_for,
    load_container_definitions,
    load_privilege_policy,
    parse_env,
    resolve_overrides,
)
from lxcctl.constants import DEFAULT_DEFINITIONS_PATH, LOCK_DIR, LXC_CONFIG_DIR
from lxcctl.exceptions import ConfigError


@pytest.fixture
def policy_file(tmp_path):
    def _write(data):
        path = tmp_path / "policy.yaml"
        path.write_text(yaml.dump(data) if not isinstance(data, str) else data)
        return path

    return _write


@pytest.mark.usefixtures("clean_env")
class TestParseEnv:
    def test_defaults(self):
        cfg = parse_env()
        assert cfg.pct_bin == "pct"
        assert cfg.lxc_config_dir == LXC_CONFIG_DIR
        assert cfg.lock_dir == LOCK_DIR
        assert cfg.definitions_path == DEFAULT_DEFINITIONS_PATH
        assert cfg.log_file is None
        assert cfg.quiet is False
        assert cfg.pct_timeout == 0
        assert cfg.exec_policy.max_attempts == 3
        assert cfg.exec_policy.delay == 10.0
        assert cfg.start_policy.max_attempts == 5
        assert cfg.start_policy.delay == 5.0
        assert cfg.start_policy.stabilization_delay == 10.0
        assert cfg.stop_policy.max_attempts == 3
        assert [d.key for d in cfg.privilege_policy.directives] == [
            "unprivileged",
            "lxc.apparmor.profile",
            "lxc.start.timeout",
        ]

    def test_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PCT_BIN", "/opt/bin/pct")
        monkeypatch.setenv("LXC_CONFIG_DIR", str(tmp_path / "lxc"))
        monkeypatch.setenv("LOCK_DIR", str(tmp_path / "locks"))
        monkeypatch.setenv("LOG_FILE", str(tmp_path / "lxcctl.log"))
        monkeypatch.setenv("QUIET_MODE", "yes")
        monkeypatch.setenv("LOG_VERBOSE", "1")
        monkeypatch.setenv("STABILIZATION_DELAY", "0")
        monkeypatch.setenv("PCT_TIMEOUT", "120")
        cfg = parse_env()
        assert cfg.pct_bin == "/opt/bin/pct"
        assert cfg.lxc_config_dir == tmp_path / "lxc"
        assert cfg.lock_dir == tmp_path / "locks"
        assert cfg.log_file == tmp_path / "lxcctl.log"
        assert cfg.quiet is True
        assert cfg.verbose is True
        assert cfg.pct_timeout == 120
        assert cfg.start_policy.stabilization_delay == 0.0
        assert cfg.exec_policy.stabilization_delay == 0.0

    @pytest.mark.parametrize("name, value", [("STABILIZATION_DELAY", "soon"), ("PCT_TIMEOUT", "-5")])
    def test_bad_integers(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        with pytest.raises(ConfigError):
            parse_env()

    def test_force_privileged_flag_is_resolved(self, monkeypatch):
        monkeypatch.setenv("FORCE_PRIVILEGED_999", "true")
        cfg = parse_env()
        rule = cfg.privilege_policy.rules_for(999)[0]
        assert rule.action == "skip"
        assert rule.override_active is True

    def test_policy_file_from_env(self, monkeypatch, policy_file):
        path = policy_file({"rules": []})
        monkeypatch.setenv("PRIVILEGE_POLICY", str(path))
        cfg = parse_env()
        assert cfg.privilege_policy.rules == []
        assert len(cfg.privilege_policy.directives) == 3

    def test_missing_policy_file(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PRIVILEGE_POLICY", str(tmp_path / "absent.yaml"))
        with pytest.raises(ConfigError):
            parse_env()


class TestLoadPrivilegePolicy:
    def test_none_returns_defaults(self):
        assert load_privilege_policy(None) == default_policy()

    def test_directives_override(self, policy_file):
        path = policy_file(
            {
                "directives": [
                    {"key": "unprivileged", "value": 0},
                    {"key": "lxc.apparmor.profile", "value": "unconfined", "overwrite": True},
                ]
            }
        )
        policy = load_privilege_policy(path)
        assert [(d.key, d.value, d.overwrite) for d in policy.directives] == [
            ("unprivileged", "0", True),
            ("lxc.apparmor.profile", "unconfined", True),
        ]
        assert policy.rules == default_policy().rules

    def test_rules(self, policy_file):
        path = policy_file({"rules": [{"first": 100, "last": 110, "action": "WARN", "message": "m {ctid}"}]})
        rule = load_privilege_policy(path).rules[0]
        assert (rule.first, rule.last, rule.action, rule.message) == (100, 110, "warn", "m {ctid}")
        assert rule.matches(105) and not rule.matches(111)

    def test_rule_last_defaults_to_first(self, policy_file):
        path = policy_file({"rules": [{"first": 7, "action": "skip", "override_env": "FORCE_7"}]})
        rule = load_privilege_policy(path).rules[0]
        assert rule.last == 7
        assert rule.override_env == "FORCE_7"

    @pytest.mark.parametrize(
        "data",
        [
            {"directives": [{"key": "unprivileged"}]},
            {"directives": [{"key": "bad key", "value": 1}]},
            {"directives": [{"key": "a", "value": 1}, {"key": "a", "value": 2}]},
            {"rules": [{"first": "x", "action": "warn"}]},
            {"rules": [{"first": 10, "last": 5, "action": "warn"}]},
            {"rules": [{"first": 10, "action": "delete"}]},
            {"rules": ["900"]},
            ["not", "a", "mapping"],
        ],
    )
    def test_invalid(self, policy_file, data):
        with pytest.raises(ConfigError):
            load_privilege_policy(policy_file(data))

    def test_invalid_yaml(self, policy_file):
        with pytest.raises(ConfigError):
            load_privilege_policy(policy_file("directives: [\n"))

    def test_empty_file_keeps_defaults(self, policy_file):
        assert load_privilege_policy(policy_file("")) == default_policy()


class TestResolveOverrides:
    def test_inactive_without_env(self, monkeypatch):
        monkeypatch.delenv("FORCE_PRIVILEGED_999", raising=False)
        policy = resolve_overrides(default_policy())
        assert all(not rule.override_active for rule in policy.rules)

    def test_falsey_value(self, monkeypatch):
        monkeypatch.setenv("FORCE_PRIVILEGED_999", "0")
        policy = resolve_overrides(default_policy())
        assert policy.rules_for(999)[0].override_active is False


class TestContainerDefinitions:
    def _write(self, tmp_path, data):
        path = tmp_path / "phoenix_lxc_configs.json"
        path.write_text(json.dumps(data) if not isinstance(data, str) else data)
        return path

    def test_load(self, tmp_path):
        path = self._write(tmp_path, {"lxc_configs": {"901": {"name": "agent", "gpu_assignment": "0"}}})
        definitions = load_container_definitions(path)
        assert definitions["901"]["name"] == "agent"
        assert gpu_assignment_for(definitions, 901) == "0"

    def test_gpu_default(self):
        definitions = {"950": {"name": "db"}, "951": {"name": "x", "gpu_assignment": None}}
        assert gpu_assignment_for(definitions, 950) == "none"
        assert gpu_assignment_for(definitions, 951) == "none"
        assert gpu_assignment_for(definitions, 404) == "none"

    @pytest.mark.parametrize("data", ["{", {"containers": {}}, {"lxc_configs": []}, []])
    def test_invalid(self, tmp_path, data):
        with pytest.raises(ConfigError):
            load_container_definitions(self._write(tmp_path, data))

    def test_missing(self, tmp_path):
        with pytest.raises(ConfigError):
            load_container_definitions(Path(tmp_path / "absent.json"))
