"""Container platform access (Proxmox ``pct``) for lxcctl."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from lxcctl.constants import LXC_CONFIG_DIR, PCT_BIN
from lxcctl.exceptions import PlatformError
from lxcctl.utils import Logger, run


class Platform:
    """Operations the reconciliation core needs from the container manager.

    ``start``, ``stop`` and ``query_status`` raise :class:`PlatformError` on
    failure. ``exec`` reports the command's outcome as a bool and only raises
    when the command could not be dispatched at all.
    """

    def query_status(self, ctid: int) -> str:
        raise NotImplementedError

    def start(self, ctid: int) -> None:
        raise NotImplementedError

    def stop(self, ctid: int) -> None:
        raise NotImplementedError

    def exec(self, ctid: int, command: Sequence[str]) -> bool:
        raise NotImplementedError

    def config_exists(self, ctid: int) -> bool:
        raise NotImplementedError

    def config_path(self, ctid: int) -> Path:
        raise NotImplementedError


class PctPlatform(Platform):
    def __init__(
        self,
        pct_bin: str = PCT_BIN,
        config_dir: Path = LXC_CONFIG_DIR,
        timeout: int = 0,
        logger: Optional[Logger] = None,
    ) -> None:
        self.pct_bin = pct_bin
        self.config_dir = config_dir
        self.timeout = timeout or None
        self.logger = logger or Logger()

    def _pct(self, args: List[str], capture_stdout: bool = True) -> subprocess.CompletedProcess:
        """Run pct. Stderr is always captured; stdout only when ``capture_stdout``.

        Undecodable bytes are replaced so container output never raises.
        """
        cmd = [self.pct_bin] + args
        try:
            return run(
                cmd,
                check=False,
                stdout=subprocess.PIPE if capture_stdout else None,
                stderr=subprocess.PIPE,
                errors="replace",
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise PlatformError(f"{' '.join(cmd)} timed out after {exc.timeout}s") from exc
        except OSError as exc:
            raise PlatformError(f"Failed to run {self.pct_bin}: {exc}") from exc

    def _checked(self, args: List[str], ctid: int, operation: str) -> subprocess.CompletedProcess:
        result = self._pct(args)
        if result.returncode != 0:
            detail = (result.stderr or "").strip() or f"exit code {result.returncode}"
            raise PlatformError(f"pct {operation} {ctid} failed: {detail}", ctid=ctid, operation=operation)
        return result

    def query_status(self, ctid: int) -> str:
        return self._checked(["status", str(ctid)], ctid, "status").stdout or ""

    def start(self, ctid: int) -> None:
        self._checked(["start", str(ctid)], ctid, "start")

    def stop(self, ctid: int) -> None:
        self._checked(["stop", str(ctid)], ctid, "stop")

    def exec(self, ctid: int, command: Sequence[str]) -> bool:
        # The command's stdout goes straight to ours.
        result = self._pct(["exec", str(ctid), "--"] + list(command), capture_stdout=False)
        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            if stderr:
                self.logger.debug(f"pct exec {ctid} stderr: {stderr}")
            return False
        return True

    def config_exists(self, ctid: int) -> bool:
        return self._pct(["config", str(ctid)]).returncode == 0

    def config_path(self, ctid: int) -> Path:
        return self.config_dir / f"{ctid}.conf"
