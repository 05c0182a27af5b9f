"""Line-level editing of Proxmox container config files (``/etc/pve/lxc/<id>.conf``)."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from lxcctl.constants import BACKUP_SUFFIX, DIRECTIVE_LINE_RE, SECTION_HEADER_RE
from lxcctl.exceptions import InvalidArgument
from lxcctl.models import ConfigDirective
from lxcctl.utils import Logger


def _parse_line(line: str) -> Optional[Tuple[str, str]]:
    if line.lstrip().startswith("#"):
        return None
    match = DIRECTIVE_LINE_RE.match(line)
    if not match:
        return None
    return match.group(1), match.group(2)


class PersistedConfig:
    """A container config file, mutated in memory and written back on save().

    Only the main section is touched; snapshot sections (``[name]``) that
    follow it are preserved verbatim. A key is never written twice.
    """

    def __init__(self, path: Path, lines: List[str], logger: Optional[Logger] = None) -> None:
        self.path = path
        self.lines = lines
        self.logger = logger or Logger()
        self._original = list(lines)

    @classmethod
    def load(cls, path: Path, logger: Optional[Logger] = None) -> "PersistedConfig":
        if not path.is_file():
            raise InvalidArgument(f"LXC config file not found: {path}", operation="load_config")
        return cls(path, path.read_text().splitlines(), logger)

    @property
    def dirty(self) -> bool:
        return self.lines != self._original

    def _main_end(self) -> int:
        for index, line in enumerate(self.lines):
            if SECTION_HEADER_RE.match(line):
                return index
        return len(self.lines)

    def _indexes_of(self, key: str) -> List[int]:
        found = []
        for index in range(self._main_end()):
            parsed = _parse_line(self.lines[index])
            if parsed and parsed[0] == key:
                found.append(index)
        return found

    def get(self, key: str) -> Optional[str]:
        indexes = self._indexes_of(key)
        if not indexes:
            return None
        parsed = _parse_line(self.lines[indexes[0]])
        return parsed[1] if parsed else None

    def apply(self, directive: ConfigDirective) -> bool:
        """Apply one directive. Returns True when the content changed."""
        indexes = self._indexes_of(directive.key)
        if not indexes:
            insert_at = self._main_end()
            while insert_at > 0 and not self.lines[insert_at - 1].strip():
                insert_at -= 1
            self.lines.insert(insert_at, directive.line)
            self.logger.info(f"Added '{directive.line}' to {self.path}")
            return True

        current = _parse_line(self.lines[indexes[0]])
        current_value = current[1] if current else None
        if not directive.overwrite:
            if current_value != directive.value:
                self.logger.warn(
                    f"{self.path}: keeping existing '{directive.key}: {current_value}' (wanted '{directive.value}')"
                )
            return False

        changed = False
        if self.lines[indexes[0]] != directive.line:
            self.lines[indexes[0]] = directive.line
            changed = True
        for index in reversed(indexes[1:]):
            del self.lines[index]
            changed = True
        if changed:
            self.logger.info(f"Set '{directive.line}' in {self.path}")
        return changed

    def apply_all(self, directives: Iterable[ConfigDirective]) -> List[ConfigDirective]:
        return [directive for directive in directives if self.apply(directive)]

    def save(self, backup: bool = True) -> bool:
        """Write the file if anything changed. Returns True when written."""
        if not self.dirty:
            self.logger.debug(f"{self.path} already up to date")
            return False
        if backup and self.path.exists():
            backup_path = self.path.with_name(self.path.name + BACKUP_SUFFIX)
            try:
                shutil.copy2(self.path, backup_path)
                self.logger.info(f"Backed up {self.path} to {backup_path}")
            except OSError as exc:
                self.logger.warn(f"Failed to back up {self.path}: {exc}")
        self.path.write_text("\n".join(self.lines) + "\n")
        self._original = list(self.lines)
        return True
