"""Bounded retry with a fixed delay."""

from __future__ import annotations

import time
from typing import Callable, Optional

from lxcctl.exceptions import PlatformError
from lxcctl.utils import Logger


class Retrier:
    def __init__(self, logger: Optional[Logger] = None) -> None:
        self.logger = logger or Logger()

    def run(self, action: Callable[[], object], max_attempts: int, delay: float, label: str = "") -> bool:
        """Call ``action`` until it succeeds or ``max_attempts`` are used up.

        An attempt fails when ``action`` returns False or raises
        PlatformError. The delay is slept between failed attempts only, never
        after the last one. Returns True on success, False when exhausted.
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1 (got {max_attempts})")
        for attempt in range(1, max_attempts + 1):
            self.logger.info(f"Attempt {attempt}/{max_attempts}: {label}")
            try:
                ok = action() is not False
            except PlatformError as exc:
                self.logger.debug(str(exc))
                ok = False
            if ok:
                self.logger.info(f"Succeeded: {label}")
                return True
            if attempt < max_attempts:
                self.logger.warn(
                    f"{label} failed (attempt {attempt}/{max_attempts}). Retrying in {delay:g} seconds..."
                )
                time.sleep(delay)
        self.logger.warn(f"{label} failed after {max_attempts} attempts")
        return False
