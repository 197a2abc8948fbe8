"""Model of sandbox profile language (SBPL) policies and their rendering."""

from __future__ import annotations

import enum
import os
import re
from dataclasses import dataclass, field
from typing import Protocol


class _Filter(Protocol):
    def __str__(self) -> str: ...


class OperationType(enum.IntEnum):
    """Kinds of sandbox operations a policy rule can refer to."""

    UNKNOWN = 0
    FILE = 1
    FILE_READ = 2
    FILE_WRITE = 3
    NETWORK = 4
    NETWORK_INBOUND = 5
    NETWORK_OUTBOUND = 6
    PROCESS_EXEC = 7
    PROCESS_EXEC_NO_SANDBOX = 8
    SYSCTL_READ = 9

    def __str__(self) -> str:
        try:
            return _OPERATION_NAMES[self]
        except KeyError:
            raise ValueError(f"unexpected operation type: {int(self)}") from None


_OPERATION_NAMES = {
    OperationType.FILE: "file*",
    OperationType.FILE_READ: "file-read*",
    OperationType.FILE_WRITE: "file-write*",
    OperationType.NETWORK: "network*",
    OperationType.NETWORK_INBOUND: "network-inbound",
    OperationType.NETWORK_OUTBOUND: "network-outbound",
    OperationType.PROCESS_EXEC: "process-exec",
    OperationType.PROCESS_EXEC_NO_SANDBOX: "process-exec",
    OperationType.SYSCTL_READ: "sysctl-read",
}


class NetworkFilterProtocol(enum.IntEnum):
    """Network protocols usable in a network filter."""

    UNKNOWN = 0
    IP = 1
    TCP = 2
    UDP = 3

    def __str__(self) -> str:
        try:
            return _PROTOCOL_NAMES[self]
        except KeyError:
            raise ValueError(
                f"unexpected network filter protocol: {int(self)}"
            ) from None


_PROTOCOL_NAMES = {
    NetworkFilterProtocol.IP: "ip",
    NetworkFilterProtocol.TCP: "tcp",
    NetworkFilterProtocol.UDP: "udp",
}

_INTEGER = re.compile(r"[+-]?[0-9]+")


def _parse_port(port: str) -> int:
    """Parse a port number; text that is not an integer counts as 0."""
    if _INTEGER.fullmatch(port):
        return int(port)
    return 0


@dataclass(frozen=True)
class NetworkFilterAddress:
    """A host:port pair; host is '*' or 'localhost', port is '*' or 0-65535."""

    host: str
    port: str

    def __post_init__(self) -> None:
        if self.host not in ("*", "localhost"):
            raise ValueError(f"invalid host: {self.host}")
        if self.port != "*" and not 0 <= _parse_port(self.port) <= 65535:
            raise ValueError(f"invalid port: {self.port}")

    def __str__(self) -> str:
        return f'"{self.host}:{self.port}"'


@dataclass
class NetworkFilter:
    """A local or remote network filter over a list of addresses."""

    is_local: bool
    protocol: NetworkFilterProtocol
    addresses: list[NetworkFilterAddress] = field(default_factory=list)

    def __str__(self) -> str:
        side = "local" if self.is_local else "remote"
        addresses = ", ".join(str(address) for address in self.addresses)
        return f"({side} {self.protocol} {addresses})"


class PathFilterType(enum.IntEnum):
    """How a path filter matches paths."""

    UNKNOWN = 0
    LITERAL = 1
    SUBPATH = 2


_SIMPLE_ESCAPES = {
    "\a": r"\a",
    "\b": r"\b",
    "\f": r"\f",
    "\n": r"\n",
    "\r": r"\r",
    "\t": r"\t",
    "\v": r"\v",
    "\\": "\\\\",
    '"': '\\"',
}


def _quote(text: str) -> str:
    """Render text as a double-quoted string literal with escapes."""
    parts = []
    for char in text:
        if char in _SIMPLE_ESCAPES:
            parts.append(_SIMPLE_ESCAPES[char])
        elif char.isprintable():
            parts.append(char)
        elif ord(char) < 0x80:
            parts.append(f"\\x{ord(char):02x}")
        elif ord(char) <= 0xFFFF:
            parts.append(f"\\u{ord(char):04x}")
        else:
            parts.append(f"\\U{ord(char):08x}")
    return '"' + "".join(parts) + '"'


@dataclass
class PathFilter:
    """A filter matching a path literally or everything beneath it."""

    type: PathFilterType
    path: str

    def __str__(self) -> str:
        if self.type is PathFilterType.LITERAL:
            return f"(literal {_quote(self.path)})"
        if self.type is PathFilterType.SUBPATH:
            return f"(subpath {_quote(self.path)})"
        raise ValueError(f"unexpected path filter type: {int(self.type)}")


def literal_path_filter(path: str) -> PathFilter:
    """Return a filter matching exactly ``path``."""
    return PathFilter(PathFilterType.LITERAL, path)


def subpath_path_filter(path: str) -> PathFilter:
    """Return a filter matching ``path`` and everything below it.

    Relative paths are made absolute against the current directory.
    """
    if not path.startswith("/"):
        path = os.path.abspath(path)
    return PathFilter(PathFilterType.SUBPATH, path)


@dataclass
class Operation:
    """An allow or deny rule for one operation type, with optional filters."""

    type: OperationType
    allowed: bool
    filters: list[_Filter] = field(default_factory=list)

    def __str__(self) -> str:
        body = ["allow" if self.allowed else "deny", str(self.type)]
        filters = " ".join(str(f) for f in self.filters)
        if filters:
            body.append(filters)
        if self.type is OperationType.PROCESS_EXEC_NO_SANDBOX:
            body.append("(with no-sandbox)")
        return "(" + " ".join(body) + ")"


_DYLIB_ACCESS = (
    "(allow file-read*\n"
    '\t(subpath "/opt/local/lib")\n'
    '\t(subpath "/usr/lib")\n'
    '\t(subpath "/usr/local/lib")\n'
    "\t)"
)


@dataclass
class Policy:
    """A complete sandbox profile."""

    allow_all_operations: bool = False
    is_network_allowed: bool = False
    operations: list[Operation] = field(default_factory=list)

    def __str__(self) -> str:
        body = [
            "(version 1)",
            '(import "bsd.sb")',
            "(allow default)" if self.allow_all_operations else "(deny default)",
            # dynamic libraries must be readable for any process to start
            _DYLIB_ACCESS,
        ]
        if self.is_network_allowed:
            body.append("(allow network* (local unix-socket))")
        body.extend(str(operation) for operation in self.operations)
        return "\n".join(body)