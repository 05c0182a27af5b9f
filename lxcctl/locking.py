"""Per-container advisory locks."""

from __future__ import annotations

import fcntl
import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from lxcctl.exceptions import LxcError
from lxcctl.utils import Logger, ensure_directory


@contextmanager
def container_lock(lock_dir: Path, ctid: int, timeout: Optional[float] = None,
                   logger: Optional[Logger] = None) -> Iterator[Path]:
    """Hold an exclusive flock on ``<lock_dir>/<ctid>.lock`` for the block.

    Waits indefinitely when ``timeout`` is None. The lock is released when the
    file descriptor closes, including on process death.
    """
    logger = logger or Logger()
    ensure_directory(lock_dir)
    path = lock_dir / f"{ctid}.lock"
    fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o644)
    try:
        if timeout is None:
            fcntl.flock(fd, fcntl.LOCK_EX)
        else:
            deadline = time.time() + timeout
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if time.time() >= deadline:
                        raise LxcError(
                            f"Container {ctid} is locked by another lxcctl process ({path})",
                            ctid=ctid,
                            operation="lock",
                        )
                    time.sleep(0.5)
        logger.debug(f"Acquired lock {path}")
        yield path
    finally:
        os.close(fd)
