"""Drive containers to Running and responsive."""

from __future__ import annotations

import time
from typing import Optional

from lxcctl.constants import RESPONSIVE_COMMAND, START_POLICY
from lxcctl.exceptions import PlatformError, RetryExhausted, StabilizationFailure
from lxcctl.models import ContainerStatus, RetryPolicy
from lxcctl.platform import Platform
from lxcctl.retry import Retrier
from lxcctl.status import StatusProbe
from lxcctl.utils import Logger, require_ctid


class LifecycleReconciler:
    def __init__(
        self,
        platform: Platform,
        probe: Optional[StatusProbe] = None,
        retrier: Optional[Retrier] = None,
        start_policy: RetryPolicy = START_POLICY,
        logger: Optional[Logger] = None,
    ) -> None:
        self.platform = platform
        self.logger = logger or Logger()
        self.probe = probe or StatusProbe(platform, self.logger)
        self.retrier = retrier or Retrier(self.logger)
        self.start_policy = start_policy

    def ensure_running(self, ctid) -> ContainerStatus:
        ctid = require_ctid(ctid, "ensure_running")
        status = self.probe.status(ctid)
        self.logger.info(f"Container {ctid} status: {status.value}")
        if status is ContainerStatus.RUNNING:
            return status
        return self.restart_and_stabilize(ctid, reason="start")

    def ensure_running_and_responsive(self, ctid) -> ContainerStatus:
        ctid = require_ctid(ctid, "ensure_running_and_responsive")
        status = self.ensure_running(ctid)
        try:
            responsive = self.platform.exec(ctid, RESPONSIVE_COMMAND)
        except PlatformError as exc:
            self.logger.debug(str(exc))
            responsive = False
        if not responsive:
            raise StabilizationFailure(
                f"Container {ctid} is running but not responsive",
                ctid=ctid,
                operation="responsive",
            )
        self.logger.info(f"Container {ctid} is responsive")
        return status

    def restart_and_stabilize(
        self, ctid: int, reason: str = "restart", stabilization_delay: Optional[float] = None
    ) -> ContainerStatus:
        """Start the container, wait for it to settle and confirm it is Running.

        `pct` reports a container as running before its services are up, so
        the stabilization sleep happens unconditionally after a good start.
        ``stabilization_delay`` overrides the start policy's wait.
        """
        policy = self.start_policy
        settle = policy.stabilization_delay if stabilization_delay is None else stabilization_delay
        self.logger.info(f"Attempting to {reason} container {ctid}...")
        started = self.retrier.run(
            lambda: self.platform.start(ctid),
            policy.max_attempts,
            policy.delay,
            label=f"pct start {ctid}",
        )
        if not started:
            raise RetryExhausted(ctid, "start", policy.max_attempts)

        if settle > 0:
            self.logger.info(f"Waiting {settle:g} seconds for container {ctid} to stabilize...")
            time.sleep(settle)

        status = self.probe.status(ctid)
        self.logger.info(f"Container {ctid} status after stabilization: {status.value}")
        if status is not ContainerStatus.RUNNING:
            raise StabilizationFailure(
                f"Container {ctid} failed to stabilize (status: {status.value})",
                ctid=ctid,
                operation=reason,
            )
        return status
