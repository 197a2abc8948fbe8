import subprocess
import sys
from unittest import mock

import pytest

from sbx.cli import (
    build_policy,
    main,
    make_parser,
    operation_from_flag,
    operation_type_for_flag,
    sandbox_exec,
)
from sbx.sbpl import (
    NetworkFilter,
    NetworkFilterAddress,
    NetworkFilterProtocol,
    OperationType,
    literal_path_filter,
    subpath_path_filter,
)


@pytest.mark.parametrize(
    "flag, expected",
    [
        ("allow-file", OperationType.FILE),
        ("deny-file-read-all", OperationType.FILE_READ),
        ("allow-file-write", OperationType.FILE_WRITE),
        ("deny-network", OperationType.NETWORK),
        ("allow-network-inbound-all", OperationType.NETWORK_INBOUND),
        ("deny-network-outbound", OperationType.NETWORK_OUTBOUND),
        ("allow-process-exec", OperationType.PROCESS_EXEC),
        ("deny-sysctl-read-all", OperationType.SYSCTL_READ),
    ],
)
def test_operation_type_for_flag(flag, expected):
    assert operation_type_for_flag(flag) is expected


@pytest.mark.parametrize("flag", ["allow-all", "allow-nothing", ""])
def test_operation_type_for_unknown_flag(flag):
    with pytest.raises(ValueError):
        operation_type_for_flag(flag)


def test_file_flag_makes_subpath_filters():
    operation = operation_from_flag("allow-file-read", "/tmp/a,/tmp/b")
    assert operation.type is OperationType.FILE_READ
    assert operation.allowed is True
    assert operation.filters == [
        subpath_path_filter("/tmp/a"),
        subpath_path_filter("/tmp/b"),
    ]


def test_relative_file_path_is_made_absolute(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    operation = operation_from_flag("deny-file-write", "foo")
    assert operation.allowed is False
    assert [f.path for f in operation.filters] == [str(tmp_path / "foo")]


def test_network_flag_makes_remote_ip_filter():
    operation = operation_from_flag("allow-network-outbound", "*:443")
    assert operation.filters == [
        NetworkFilter(
            False, NetworkFilterProtocol.IP, [NetworkFilterAddress("*", "443")]
        )
    ]


def test_network_flag_with_several_addresses():
    operation = operation_from_flag("allow-network", "*:80,localhost:*")
    addresses = [
        NetworkFilterAddress("*", "80"),
        NetworkFilterAddress("localhost", "*"),
    ]
    assert len(operation.filters) == 2
    assert all(f.addresses == addresses for f in operation.filters)


def test_network_address_without_port_is_rejected():
    with pytest.raises(ValueError, match="host:port"):
        operation_from_flag("allow-network", "localhost")


@pytest.mark.parametrize("value", ["example.com:80", "*:70000", "localhost:-1"])
def test_invalid_network_address_is_rejected(value):
    with pytest.raises(ValueError):
        operation_from_flag("allow-network", value)


@pytest.mark.parametrize(
    "flag, allowed", [("allow-network-all", True), ("deny-file-all", False)]
)
def test_all_flags_have_no_filters(flag, allowed):
    operation = operation_from_flag(flag, True)
    assert operation.filters == []
    assert operation.allowed is allowed


def test_process_exec_flag_makes_literal_filter():
    operation = operation_from_flag("deny-process-exec", "/bin/sh")
    assert operation.filters == [literal_path_filter("/bin/sh")]
    assert operation.allowed is False


def test_sysctl_read_with_value_is_rejected():
    with pytest.raises(ValueError):
        operation_from_flag("allow-sysctl-read", "kern")


def test_build_policy_appends_command_exec():
    policy = build_policy({"allow-file-read": "/tmp/a"}, "/bin/ls")
    last = policy.operations[-1]
    assert last.type is OperationType.PROCESS_EXEC
    assert last.allowed is True
    assert last.filters == [literal_path_filter("/bin/ls")]
    assert policy.allow_all_operations is False
    assert policy.is_network_allowed is False
    assert len(policy.operations) == 2


def test_build_policy_allow_all():
    policy = build_policy({"allow-all": True}, "/bin/ls")
    assert policy.allow_all_operations is True
    assert "(allow default)" in str(policy)
    assert len(policy.operations) == 1


def test_build_policy_network_allowed():
    policy = build_policy({"allow-network": "*:443"}, "/bin/ls")
    assert policy.is_network_allowed is True
    assert "(allow network* (local unix-socket))" in str(policy)


def test_build_policy_network_all_does_not_allow_unix_socket():
    policy = build_policy({"allow-network-all": True}, "/bin/ls")
    assert policy.is_network_allowed is False


def test_build_policy_keeps_flag_order():
    policy = build_policy(
        {"deny-file-all": True, "allow-process-exec": "/bin/sh"}, "/bin/ls"
    )
    assert [op.type for op in policy.operations] == [
        OperationType.FILE,
        OperationType.PROCESS_EXEC,
        OperationType.PROCESS_EXEC,
    ]


def test_parser_splits_flags_and_command():
    args = vars(make_parser().parse_args(["--allow-file-read", "./foo", "ls", "./foo"]))
    assert args["allow-file-read"] == "./foo"
    assert args["command"] == ["ls", "./foo"]


def test_parser_keeps_command_flags():
    args = vars(make_parser().parse_args(["-A", "ls", "-l", "./foo"]))
    assert args["allow-all"] is True
    assert args["command"][-2:] == ["-l", "./foo"]


def test_main_without_command_prints_help(capsys):
    assert main([]) == 0
    assert "sandbox-exec" in capsys.readouterr().out


def test_main_with_unknown_command_prints_help(capsys):
    assert main(["no-such-command-for-sbx-tests"]) == 0
    assert "usage" in capsys.readouterr().out


def test_main_reports_invalid_flag_value(capsys):
    assert main(["--allow-network", "bad", "ls"]) == 1
    assert "host:port" in capsys.readouterr().err


def test_main_runs_command_in_sandbox():
    completed = subprocess.CompletedProcess(args=[], returncode=3)
    with mock.patch("sbx.cli.subprocess.run", return_value=completed) as run:
        code = main(["--allow-file-read", "/tmp", "--", sys.executable, "-c", "pass"])
    assert code == 3
    argv = run.call_args.args[0]
    assert argv[:2] == ["sandbox-exec", "-p"]
    assert argv[-3:] == [sys.executable, "-c", "pass"]
    assert '(subpath "/tmp")' in argv[2]
    assert str(literal_path_filter(sys.executable)) in argv[2]


def test_sandbox_exec_requires_command():
    with pytest.raises(ValueError, match="command is required"):
        sandbox_exec("(version 1)", "", [])


def test_sandbox_exec_start_failure(capsys):
    with mock.patch("sbx.cli.subprocess.run", side_effect=FileNotFoundError("gone")):
        assert sandbox_exec("(version 1)", "/bin/ls", []) == 1
    assert "failed to start command" in capsys.readouterr().err


def test_sandbox_exec_signal_termination():
    completed = subprocess.CompletedProcess(args=[], returncode=-9)
    with mock.patch("sbx.cli.subprocess.run", return_value=completed):
        assert sandbox_exec("(version 1)", "/bin/ls", ["-l"]) == -1