"""Command line front end: build a sandbox policy from flags and run a command under it."""

from __future__ import annotations

import argparse
import shutil
import subprocess
import sys
from collections.abc import Mapping, Sequence

from sbx.sbpl import (
    NetworkFilter,
    NetworkFilterAddress,
    NetworkFilterProtocol,
    Operation,
    OperationType,
    Policy,
    literal_path_filter,
    subpath_path_filter,
)

FLAG_ALLOW_ALL = "allow-all"

# (flag stem, operation type, name shown in help text)
_OPERATION_FLAGS = (
    ("file", OperationType.FILE, "file*"),
    ("file-read", OperationType.FILE_READ, "file-read"),
    ("file-write", OperationType.FILE_WRITE, "file-write"),
    ("network", OperationType.NETWORK, "network*"),
    ("network-inbound", OperationType.NETWORK_INBOUND, "network-inbound"),
    ("network-outbound", OperationType.NETWORK_OUTBOUND, "network-outbound"),
    ("process-exec", OperationType.PROCESS_EXEC, "process-exec"),
    ("sysctl-read", OperationType.SYSCTL_READ, "sysctl-read"),
)

_FILE_TYPES = frozenset(
    {OperationType.FILE, OperationType.FILE_READ, OperationType.FILE_WRITE}
)
_NETWORK_TYPES = frozenset(
    {
        OperationType.NETWORK,
        OperationType.NETWORK_INBOUND,
        OperationType.NETWORK_OUTBOUND,
    }
)
_EXEC_TYPES = frozenset(
    {OperationType.PROCESS_EXEC, OperationType.PROCESS_EXEC_NO_SANDBOX}
)


def _flag_specs() -> list[tuple[str, OperationType, bool, str]]:
    """Return (name, operation type, takes a value, help) for every operation flag."""
    specs = []
    for stem, op_type, label in _OPERATION_FLAGS:
        specs.append((f"allow-{stem}", op_type, True, f"allow {label} operation"))
        specs.append((f"deny-{stem}", op_type, True, f"deny {label} operation"))
        specs.append(
            (f"allow-{stem}-all", op_type, False, f"allow all {label} operation")
        )
        specs.append(
            (f"deny-{stem}-all", op_type, False, f"deny all {label} operation")
        )
    return specs


_FLAG_SPECS = _flag_specs()
_OPERATION_TYPE_BY_FLAG = {name: op_type for name, op_type, _, _ in _FLAG_SPECS}
_FLAG_NAMES = (FLAG_ALLOW_ALL, *(name for name, _, _, _ in _FLAG_SPECS))

_USAGE = """sbx [flags] <command> [command-args...]
sbx [flags] -- <command> [command-flags] [command-args...]"""

_EPILOG = """Example:
	sbx --allow-file-read ./foo ls ./foo
	# same as above
	sbx --allow-file-read='./foo' ls ./foo

	# with command flags
	sbx --allow-file-read='./foo' -- ls -l ./foo"""


def operation_type_for_flag(flag_name: str) -> OperationType:
    """Return the operation type an operation flag refers to."""
    try:
        return _OPERATION_TYPE_BY_FLAG[flag_name]
    except KeyError:
        raise ValueError(f"unknown operation flag: {flag_name}") from None


def _parse_address(value: str) -> NetworkFilterAddress:
    host, found, port = value.partition(":")
    if not found:
        raise ValueError(f"address must be in the format of host:port: {value}")
    return NetworkFilterAddress(host, port)


def operation_from_flag(flag_name: str, value: object) -> Operation:
    """Build the operation described by one flag and its value.

    Flags ending in ``-all`` ignore their value and carry no filters; the
    others take a comma separated list of paths or host:port addresses.
    """
    op_type = operation_type_for_flag(flag_name)
    allowed = flag_name.startswith("allow-")
    if flag_name.endswith("-all"):
        return Operation(op_type, allowed, [])

    values = str(value).split(",")
    if op_type in _FILE_TYPES:
        filters = [subpath_path_filter(v) for v in values]
    elif op_type in _NETWORK_TYPES:
        addresses = [_parse_address(v) for v in values]
        # only remote ip filters are supported
        filters = [
            NetworkFilter(False, NetworkFilterProtocol.IP, addresses)
            for _ in values
        ]
    elif op_type in _EXEC_TYPES:
        filters = [literal_path_filter(v) for v in values]
    else:
        raise ValueError(f"unexpected operation type: {op_type}")
    return Operation(op_type, allowed, filters)


def build_policy(flags: Mapping[str, object], command_path: str) -> Policy:
    """Build a policy from set flags (name to value) that may execute ``command_path``."""
    allow_all = False
    network_allowed = False
    operations = []
    for name, value in flags.items():
        if name == FLAG_ALLOW_ALL:
            allow_all = True
            continue
        operation = operation_from_flag(name, value)
        if any(isinstance(f, NetworkFilter) for f in operation.filters):
            network_allowed = True
        operations.append(operation)
    operations.append(
        Operation(
            OperationType.PROCESS_EXEC, True, [literal_path_filter(command_path)]
        )
    )
    return Policy(allow_all, network_allowed, operations)


def make_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the sbx command."""
    parser = argparse.ArgumentParser(
        prog="sbx",
        usage=_USAGE,
        description="a tool for running commands with macOS sandbox-exec policies",
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
    )
    parser.add_argument(
        "-A",
        f"--{FLAG_ALLOW_ALL}",
        dest=FLAG_ALLOW_ALL,
        action="store_true",
        help="allow all operation",
    )
    for name, _, takes_value, help_text in _FLAG_SPECS:
        if takes_value:
            parser.add_argument(f"--{name}", dest=name, default=None, help=help_text)
        else:
            parser.add_argument(
                f"--{name}", dest=name, action="store_true", help=help_text
            )
    parser.add_argument("command", nargs=argparse.REMAINDER, help=argparse.SUPPRESS)
    return parser


def sandbox_exec(policy: str, command: str, args: Sequence[str] = ()) -> int:
    """Run ``command`` under ``policy`` with sandbox-exec and return its exit code."""
    if not command:
        raise ValueError("command is required")
    argv = ["sandbox-exec", "-p", policy, command, *args]
    try:
        completed = subprocess.run(argv, check=False)
    except OSError as exc:
        print(f"failed to start command: {exc}", file=sys.stderr)
        return 1
    if completed.returncode < 0:
        # terminated by a signal: there is no exit status
        return -1
    return completed.returncode


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point of the sbx command; returns the process exit code."""
    parser = make_parser()
    namespace = vars(parser.parse_args(argv))

    rest = list(namespace.pop("command") or [])
    if rest and rest[0] == "--":
        rest = rest[1:]

    flags = {
        name: namespace[name]
        for name in _FLAG_NAMES
        if namespace[name] is not None and namespace[name] is not False
    }

    command = rest[0] if rest else ""
    try:
        # validate the flags before looking up the command
        build_policy(flags, command)
    except ValueError as exc:
        print(f"sbx: {exc}", file=sys.stderr)
        return 1

    command_path = shutil.which(command) if command else None
    if command_path is None:
        parser.print_help()
        return 0

    policy = build_policy(flags, command_path)
    return sandbox_exec(str(policy), command_path, rest[1:])


if __name__ == "__main__":
    sys.exit(main())