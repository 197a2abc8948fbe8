# sbx

`sbx` runs a command under a macOS `sandbox-exec` policy that it builds from
command-line flags. Unless `-A` is given, the policy starts from `(deny default)`.
It always allows reading the dynamic libraries under `/opt/local/lib`, `/usr/lib`
and `/usr/local/lib`, and executing the command itself.

The `sandbox-exec` program must be on the `PATH`, so the command is only useful on macOS.

## Installation

```
pip install .
```

## Usage

```
sbx [flags] <command> [command-args...]
sbx [flags] -- <command> [command-flags] [command-args...]
```

Examples:

```
sbx --allow-file-read ./foo ls ./foo
sbx --allow-file-read='./foo' ls ./foo

# pass flags through to the command
sbx --allow-file-read='./foo' -- ls -l ./foo

# allow outbound connections to any host on port 443
sbx --allow-network-outbound='*:443' -- curl https://example.com
```

The command is looked up on the `PATH`. If no command is given or it cannot be found,
`sbx` prints its help and exits with status 0. An invalid flag value (a bad path,
host or port) is reported on standard error and `sbx` exits with status 1.
Otherwise `sbx` exits with the command's exit status.

### Flags

`-A`, `--allow-all` starts the policy from `(allow default)` instead of `(deny default)`.

Each operation has four flags:

| Operation          | Flags |
|--------------------|-------|
| `file*`            | `--allow-file`, `--deny-file`, `--allow-file-all`, `--deny-file-all` |
| `file-read*`       | `--allow-file-read`, `--deny-file-read`, `--allow-file-read-all`, `--deny-file-read-all` |
| `file-write*`      | `--allow-file-write`, `--deny-file-write`, `--allow-file-write-all`, `--deny-file-write-all` |
| `network*`         | `--allow-network`, `--deny-network`, `--allow-network-all`, `--deny-network-all` |
| `network-inbound`  | `--allow-network-inbound`, `--deny-network-inbound`, `--allow-network-inbound-all`, `--deny-network-inbound-all` |
| `network-outbound` | `--allow-network-outbound`, `--deny-network-outbound`, `--allow-network-outbound-all`, `--deny-network-outbound-all` |
| `process-exec`     | `--allow-process-exec`, `--deny-process-exec`, `--allow-process-exec-all`, `--deny-process-exec-all` |
| `sysctl-read`      | `--allow-sysctl-read`, `--deny-sysctl-read`, `--allow-sysctl-read-all`, `--deny-sysctl-read-all` |

Flags that take a value accept a comma-separated list:

* file flags take paths. Relative paths are made absolute against the current directory,
  and each path matches its whole subtree (`subpath`).
* network flags take `host:port` addresses. The host must be `*` or `localhost`, and the
  port must be `*` or a number from 0 to 65535. They produce `remote ip` filters. Any of
  them also adds `(allow network* (local unix-socket))` to the policy.
* process-exec flags take exact executable paths (`literal`).
* `sysctl-read` flags take no filters. Use the `-all` forms.

The `-all` flags take no value and apply to the whole operation.

## Library use

`sbx.sbpl` models a policy and renders it as SBPL text with `str()`. It provides
`Policy`, `Operation`, `OperationType`, `PathFilter`, `PathFilterType`,
`NetworkFilter`, `NetworkFilterAddress`, `NetworkFilterProtocol`,
`literal_path_filter` and `subpath_path_filter`.

```python
from sbx.sbpl import Operation, OperationType, Policy, subpath_path_filter

policy = Policy(
    allow_all_operations=False,
    is_network_allowed=False,
    operations=[
        Operation(OperationType.FILE_READ, True, [subpath_path_filter("/tmp/data")]),
    ],
)
print(policy)
```

`sbx.cli` exposes the steps of the command:

* `operation_from_flag` turns one flag and its value into an `Operation`.
* `build_policy` builds a `Policy` from a mapping of set flags and the command path.
* `sandbox_exec` runs a command under a policy string and returns its exit code.
* `main` is the command's entry point.

## What it does not do

* `sbx` has no option to print the generated policy or save it to a file. To inspect a
  policy, build it with `build_policy` and call `str()` on the result.
* The command line only produces remote `ip` network filters. Local filters and the
  `tcp` and `udp` protocols are available only through `sbx.sbpl`.