"""Stateless validation predicates.

Each check returns a :class:`Validation` and logs its verdict. None of them
retry on their own; the path check goes through the executor, which does.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError

from lxcctl.config import gpu_assignment_for
from lxcctl.constants import GPU_ASSIGNMENT_RE
from lxcctl.exceptions import InvalidArgument, LxcError, PlatformError
from lxcctl.executor import CommandExecutor
from lxcctl.models import ContainerStatus, Validation
from lxcctl.utils import require_ctid

PathLike = Union[str, Path, None]


def gpu_assignment_format(value: Optional[str]) -> Validation:
    """``none``, ``all`` or a comma-separated list of GPU indices."""
    if value is None:
        return Validation.INVALID_ARGUMENT
    if GPU_ASSIGNMENT_RE.fullmatch(value):
        return Validation.VALID
    return Validation.INVALID


class Validator:
    def __init__(self, executor: CommandExecutor) -> None:
        self.executor = executor
        self.platform = executor.platform
        self.probe = executor.probe
        self.logger = executor.logger

    def _ctid(self, ctid, operation: str) -> Optional[int]:
        try:
            return require_ctid(ctid, operation)
        except InvalidArgument as exc:
            self.logger.error(str(exc))
            return None

    def container_exists(self, ctid) -> Validation:
        ctid = self._ctid(ctid, "container_exists")
        if ctid is None:
            return Validation.INVALID_ARGUMENT
        try:
            exists = self.platform.config_exists(ctid)
        except PlatformError as exc:
            self.logger.error(f"container_exists: Could not query container {ctid}: {exc}")
            return Validation.INVALID
        if exists:
            return Validation.VALID
        self.logger.warn(f"container_exists: Container {ctid} does not exist.")
        return Validation.INVALID

    def container_running(self, ctid) -> Validation:
        ctid = self._ctid(ctid, "container_running")
        if ctid is None:
            return Validation.INVALID_ARGUMENT
        status = self.probe.status(ctid)
        if status is ContainerStatus.RUNNING:
            self.logger.info(f"container_running: Container {ctid} is running.")
            return Validation.VALID
        self.logger.warn(f"container_running: Container {ctid} is not running (status: {status.value}).")
        return Validation.INVALID

    def gpu_assignment(self, value: Optional[str]) -> Validation:
        result = gpu_assignment_format(value)
        if result is Validation.INVALID_ARGUMENT:
            self.logger.error("gpu_assignment: GPU assignment string is required.")
        elif result is Validation.INVALID:
            self.logger.error(
                f"gpu_assignment: Invalid GPU assignment format: '{value}'. "
                "Expected 'none', 'all', or comma-separated GPU indices (e.g. '0', '1', '0,1')."
            )
        return result

    def path_in_container(self, ctid, path: Optional[str]) -> Validation:
        ctid = self._ctid(ctid, "path_in_container")
        if ctid is None:
            return Validation.INVALID_ARGUMENT
        if not path:
            self.logger.error("path_in_container: Path is required.")
            return Validation.INVALID_ARGUMENT
        try:
            self.executor.exec_with_retry(ctid, ["test", "-e", path])
        except LxcError as exc:
            self.logger.warn(f"path_in_container: Path '{path}' does not exist in container {ctid}: {exc}")
            return Validation.INVALID
        self.logger.info(f"path_in_container: Path '{path}' exists in container {ctid}.")
        return Validation.VALID

    def _load_json(self, path: Path, operation: str) -> Tuple[bool, Any]:
        if not path.is_file():
            self.logger.error(f"{operation}: File '{path}' does not exist.")
            return False, None
        try:
            return True, json.loads(path.read_text())
        except (OSError, ValueError) as exc:
            self.logger.error(f"{operation}: Invalid JSON in '{path}': {exc}")
            return False, None

    def json_syntax(self, path: PathLike) -> Validation:
        if not path:
            self.logger.error("json_syntax: Path to JSON file is required.")
            return Validation.INVALID_ARGUMENT
        ok, _ = self._load_json(Path(path), "json_syntax")
        if not ok:
            return Validation.INVALID
        self.logger.info(f"json_syntax: JSON syntax is valid for file '{path}'.")
        return Validation.VALID

    def json_schema(self, path: PathLike, schema_path: PathLike) -> Validation:
        if not path or not schema_path:
            self.logger.error("json_schema: Paths to JSON file and schema file are required.")
            return Validation.INVALID_ARGUMENT
        ok, schema = self._load_json(Path(schema_path), "json_schema")
        if not ok or not isinstance(schema, dict):
            return Validation.INVALID
        ok, data = self._load_json(Path(path), "json_schema")
        if not ok:
            return Validation.INVALID
        try:
            Draft202012Validator.check_schema(schema)
        except SchemaError as exc:
            self.logger.error(f"json_schema: Schema '{schema_path}' is invalid: {exc.message}")
            return Validation.INVALID
        errors = sorted(Draft202012Validator(schema).iter_errors(data), key=lambda e: [str(part) for part in e.path])
        if errors:
            for error in errors:
                location = "/".join(str(part) for part in error.path) or "<root>"
                self.logger.error(f"json_schema: {path}: {location}: {error.message}")
            return Validation.INVALID
        self.logger.info(f"json_schema: '{path}' conforms to schema '{schema_path}'.")
        return Validation.VALID

    def container_definition(self, definitions: Dict[str, Any], ctid) -> Validation:
        ctid = self._ctid(ctid, "container_definition")
        if ctid is None:
            return Validation.INVALID_ARGUMENT
        entry = definitions.get(str(ctid))
        if not isinstance(entry, dict):
            self.logger.error(f"container_definition: No definition for container {ctid}")
            return Validation.INVALID
        name = entry.get("name")
        if not isinstance(name, str) or not name.strip():
            self.logger.error(f"container_definition: Missing or invalid 'name' for container {ctid}")
            return Validation.INVALID
        if self.gpu_assignment(gpu_assignment_for(definitions, ctid)) is not Validation.VALID:
            self.logger.error(f"container_definition: Invalid GPU assignment for container {ctid}")
            return Validation.INVALID
        return Validation.VALID

