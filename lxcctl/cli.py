"""CLI entry points for lxcctl."""

from __future__ import annotations

import argparse
from typing import List, NamedTuple, Optional

from lxcctl.config import load_container_definitions, parse_env
from lxcctl.exceptions import InvalidArgument, LxcError
from lxcctl.executor import CommandExecutor
from lxcctl.lifecycle import LifecycleReconciler
from lxcctl.locking import container_lock
from lxcctl.models import PrivilegeResult, ReconcilerConfig, Validation
from lxcctl.platform import PctPlatform
from lxcctl.privilege import PrivilegeConfigurator
from lxcctl.retry import Retrier
from lxcctl.status import StatusProbe
from lxcctl.utils import Logger, log, require_ctid
from lxcctl.validation import Validator

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID_ARGUMENT = 2

_VALIDATION_EXIT = {
    Validation.VALID: EXIT_OK,
    Validation.INVALID: EXIT_FAILURE,
    Validation.INVALID_ARGUMENT: EXIT_INVALID_ARGUMENT,
}


class Components(NamedTuple):
    logger: Logger
    platform: PctPlatform
    reconciler: LifecycleReconciler
    executor: CommandExecutor
    configurator: PrivilegeConfigurator
    validator: Validator


def build_components(cfg: ReconcilerConfig) -> Components:
    logger = Logger(log_file=cfg.log_file, verbose=cfg.verbose, quiet=cfg.quiet)
    platform = PctPlatform(cfg.pct_bin, cfg.lxc_config_dir, cfg.pct_timeout, logger)
    probe = StatusProbe(platform, logger)
    reconciler = LifecycleReconciler(platform, probe, Retrier(logger), cfg.start_policy, logger)
    executor = CommandExecutor(reconciler, cfg.exec_policy, logger)
    configurator = PrivilegeConfigurator(executor, cfg.privilege_policy, cfg.stop_policy, cfg.start_policy)
    validator = Validator(executor)
    return Components(logger, platform, reconciler, executor, configurator, validator)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lxcctl", description="Reconcile and operate Proxmox LXC containers")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("status", help="Print the container's status")
    p.add_argument("ctid")

    p = sub.add_parser("ensure-running", help="Start the container if needed and wait for it to stabilize")
    p.add_argument("ctid")
    p.add_argument("--responsive", action="store_true", help="Also check that the container answers a no-op exec")

    p = sub.add_parser("exec", help="Run a command inside the container with retries")
    p.add_argument("ctid")
    p.add_argument("argv", nargs=argparse.REMAINDER, help="Command to run (prefix with -- to pass options)")

    p = sub.add_parser("make-privileged", help="Switch the container to privileged mode and restart it")
    p.add_argument("ctid")

    p = sub.add_parser("validate", help="Run a single validation check")
    checks = p.add_subparsers(dest="check", required=True)
    checks.add_parser("exists").add_argument("ctid")
    checks.add_parser("running").add_argument("ctid")
    checks.add_parser("gpu").add_argument("value")
    c = checks.add_parser("path")
    c.add_argument("ctid")
    c.add_argument("path")
    checks.add_parser("json").add_argument("file")
    c = checks.add_parser("schema")
    c.add_argument("file")
    c.add_argument("schema")
    c = checks.add_parser("definition")
    c.add_argument("ctid")
    return parser


def _run_validation(args: argparse.Namespace, parts: Components, cfg: ReconcilerConfig) -> int:
    validator = parts.validator
    check = args.check
    if check == "exists":
        result = validator.container_exists(args.ctid)
    elif check == "running":
        result = validator.container_running(args.ctid)
    elif check == "gpu":
        result = validator.gpu_assignment(args.value)
    elif check == "path":
        ctid = require_ctid(args.ctid, "validate path")
        with container_lock(cfg.lock_dir, ctid, logger=parts.logger):
            result = validator.path_in_container(ctid, args.path)
    elif check == "json":
        result = validator.json_syntax(args.file)
    elif check == "schema":
        result = validator.json_schema(args.file, args.schema)
    else:
        result = validator.container_definition(load_container_definitions(cfg.definitions_path), args.ctid)
    if result is Validation.VALID:
        parts.logger.success(f"validate {check}: valid")
    return _VALIDATION_EXIT[result]


def _run_container_command(args: argparse.Namespace, parts: Components) -> int:
    ctid = require_ctid(args.ctid, args.command)
    if args.command == "ensure-running":
        if args.responsive:
            parts.reconciler.ensure_running_and_responsive(ctid)
        else:
            parts.reconciler.ensure_running(ctid)
        parts.logger.success(f"Container {ctid} is running")
    elif args.command == "exec":
        argv = list(args.argv)
        if argv and argv[0] == "--":
            argv = argv[1:]
        parts.executor.exec_with_retry(ctid, argv)
    else:
        result = parts.configurator.make_privileged(ctid)
        if result is PrivilegeResult.SKIPPED:
            parts.logger.info(f"Container {ctid} left unchanged")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        cfg = parse_env()
    except LxcError as exc:
        log("ERROR", str(exc))
        return EXIT_FAILURE

    parts = build_components(cfg)
    try:
        if args.command == "status":
            ctid = require_ctid(args.ctid, "status")
            print(parts.reconciler.probe.status(ctid).value, flush=True)
            return EXIT_OK
        if args.command == "validate":
            return _run_validation(args, parts, cfg)
        # ensure-running, exec and make-privileged hold the container lock.
        ctid = require_ctid(args.ctid, args.command)
        with container_lock(cfg.lock_dir, ctid, logger=parts.logger):
            return _run_container_command(args, parts)
    except InvalidArgument as exc:
        parts.logger.error(str(exc))
        return EXIT_INVALID_ARGUMENT
    except LxcError as exc:
        parts.logger.error(str(exc))
        return EXIT_FAILURE
    except OSError as exc:
        parts.logger.error(f"Unexpected error: {exc}")
        return EXIT_FAILURE
