"""Switch containers to privileged execution mode."""

from __future__ import annotations

from typing import Optional

from lxcctl.config import default_policy
from lxcctl.constants import RESPONSIVE_COMMAND, START_POLICY, STOP_POLICY
from lxcctl.exceptions import InvalidArgument, RetryExhausted
from lxcctl.executor import CommandExecutor
from lxcctl.models import PrivilegePolicy, PrivilegeResult, RetryPolicy
from lxcctl.pveconf import PersistedConfig
from lxcctl.utils import require_ctid


class PrivilegeConfigurator:
    """Rewrite a container's persisted config and cycle it.

    Sequence: identifier rules, stop, directive writes, start, responsiveness
    check through the executor. Directive writes are individually idempotent,
    so a failed run is recovered by running again; nothing is rolled back.
    """

    def __init__(
        self,
        executor: CommandExecutor,
        policy: Optional[PrivilegePolicy] = None,
        stop_policy: RetryPolicy = STOP_POLICY,
        start_policy: RetryPolicy = START_POLICY,
    ) -> None:
        self.executor = executor
        self.platform = executor.platform
        self.retrier = executor.reconciler.retrier
        self.logger = executor.logger
        self.policy = policy or default_policy()
        self.stop_policy = stop_policy
        self.start_policy = start_policy

    def _check_rules(self, ctid: int) -> bool:
        """Apply warn/skip rules. Returns False when the container must be skipped."""
        proceed = True
        for rule in self.policy.rules_for(ctid):
            message = rule.message.format(ctid=ctid) if rule.message else f"Rule {rule.action} matched {ctid}"
            if rule.action == "warn":
                self.logger.warn(f"make_privileged: {message}")
            elif rule.action == "skip":
                if rule.override_active:
                    self.logger.info(
                        f"make_privileged: {rule.override_env} is set, configuring container {ctid} anyway"
                    )
                    continue
                self.logger.info(f"make_privileged: {message}")
                proceed = False
        return proceed

    def make_privileged(self, ctid) -> PrivilegeResult:
        ctid = require_ctid(ctid, "make_privileged")
        if not self._check_rules(ctid):
            return PrivilegeResult.SKIPPED

        config_path = self.platform.config_path(ctid)
        if not config_path.is_file():
            raise InvalidArgument(
                f"make_privileged: LXC config file not found: {config_path}",
                ctid=ctid,
                operation="make_privileged",
            )

        self.logger.info(f"make_privileged: Stopping container {ctid}...")
        stopped = self.retrier.run(
            lambda: self.platform.stop(ctid),
            self.stop_policy.max_attempts,
            self.stop_policy.delay,
            label=f"pct stop {ctid}",
        )
        if not stopped:
            raise RetryExhausted(ctid, "stop", self.stop_policy.max_attempts)

        config = PersistedConfig.load(config_path, self.logger)
        changed = config.apply_all(self.policy.directives)
        config.save()
        if not changed:
            self.logger.info(f"make_privileged: {config_path} already configured")

        self.logger.info(f"make_privileged: Starting container {ctid}...")
        started = self.retrier.run(
            lambda: self.platform.start(ctid),
            self.start_policy.max_attempts,
            self.start_policy.delay,
            label=f"pct start {ctid}",
        )
        if not started:
            raise RetryExhausted(ctid, "start", self.start_policy.max_attempts)

        self.logger.info(f"make_privileged: Waiting for container {ctid} to become responsive...")
        self.executor.exec_with_retry(ctid, RESPONSIVE_COMMAND)
        self.logger.success(f"Container {ctid} configured as privileged and is responsive")
        return PrivilegeResult.CONFIGURED
