"""Container status probing for lxcctl."""

from __future__ import annotations

from typing import Optional

from lxcctl.constants import STATUS_LINE_RE
from lxcctl.exceptions import PlatformError
from lxcctl.models import ContainerStatus
from lxcctl.platform import Platform
from lxcctl.utils import Logger


def parse_status(raw: str) -> ContainerStatus:
    """Map ``pct status`` output (``status: running``) to a ContainerStatus."""
    match = STATUS_LINE_RE.search(raw or "")
    if not match:
        return ContainerStatus.UNKNOWN
    word = match.group(1).lower()
    if word == "running":
        return ContainerStatus.RUNNING
    if word == "stopped":
        return ContainerStatus.STOPPED
    return ContainerStatus.UNKNOWN


class StatusProbe:
    """Read a container's lifecycle state. Never raises."""

    def __init__(self, platform: Platform, logger: Optional[Logger] = None) -> None:
        self.platform = platform
        self.logger = logger or Logger()

    def status(self, ctid: int) -> ContainerStatus:
        try:
            raw = self.platform.query_status(ctid)
        except PlatformError as exc:
            self.logger.debug(f"Status query for container {ctid} failed: {exc}")
            return ContainerStatus.UNKNOWN
        status = parse_status(raw)
        self.logger.debug(f"Container {ctid} status: {status.value}")
        return status

    def is_running(self, ctid: int) -> bool:
        return self.status(ctid) is ContainerStatus.RUNNING
