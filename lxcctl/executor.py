"""Command execution inside containers with restart escalation."""

from __future__ import annotations

import time
from typing import Optional, Sequence

from lxcctl.constants import EXEC_POLICY, RESPONSIVE_COMMAND
from lxcctl.exceptions import LxcError, PlatformError, RetryExhausted
from lxcctl.lifecycle import LifecycleReconciler
from lxcctl.models import ContainerStatus, RetryPolicy
from lxcctl.utils import Logger, require_command, require_ctid


class CommandExecutor:
    def __init__(
        self,
        reconciler: LifecycleReconciler,
        policy: RetryPolicy = EXEC_POLICY,
        logger: Optional[Logger] = None,
    ) -> None:
        self.reconciler = reconciler
        self.platform = reconciler.platform
        self.probe = reconciler.probe
        self.policy = policy
        self.logger = logger or reconciler.logger

    def exec_with_retry(self, ctid, command: Sequence[str]) -> None:
        """Run ``command`` in the container, retrying per the exec policy.

        The container is brought to Running first. If it drops out of Running
        between attempts it is restarted and stabilized before the next
        attempt; the restart consumes no attempt and resets nothing.
        Raises RetryExhausted once every attempt has failed.
        """
        ctid = require_ctid(ctid, "exec_with_retry")
        argv = require_command(command, "exec_with_retry")
        shown = " ".join(argv)

        self.reconciler.ensure_running(ctid)

        max_attempts = self.policy.max_attempts
        for attempt in range(1, max_attempts + 1):
            self.logger.info(f"Executing in container {ctid} (attempt {attempt}/{max_attempts}): {shown}")
            if self._attempt(ctid, argv):
                self.logger.success(f"Command succeeded in container {ctid}: {shown}")
                return
            if attempt == max_attempts:
                break
            self.logger.warn(f"Command failed in container {ctid}. Retrying in {self.policy.delay:g} seconds...")
            time.sleep(self.policy.delay)
            status = self.probe.status(ctid)
            self.logger.info(f"Container {ctid} status after attempt {attempt}: {status.value}")
            if status is not ContainerStatus.RUNNING:
                self.reconciler.restart_and_stabilize(
                    ctid, reason="restart", stabilization_delay=self.policy.stabilization_delay
                )

        self.logger.error(f"Command failed after {max_attempts} attempts in container {ctid}: {shown}")
        raise RetryExhausted(ctid, "exec", max_attempts, command=argv)

    def _attempt(self, ctid: int, argv: Sequence[str]) -> bool:
        try:
            return bool(self.platform.exec(ctid, argv))
        except PlatformError as exc:
            self.logger.debug(str(exc))
            return False

    def is_responsive(self, ctid) -> bool:
        ctid = require_ctid(ctid, "is_responsive")
        try:
            self.exec_with_retry(ctid, RESPONSIVE_COMMAND)
        except LxcError as exc:
            self.logger.warn(f"Container {ctid} is not responsive: {exc}")
            return False
        return True
