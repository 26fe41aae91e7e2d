"""Tests for CLI module."""

import argparse
import errno
import io
import json
from unittest.mock import AsyncMock, patch

import pytest

from relay_diag.cli import (
    build_parser,
    main,
    parse_ports,
    resolve_host,
    resolve_path,
    run_diag,
    run_hc,
)
from relay_diag.diagnostics.commands import DiagnosticOptions
from relay_diag.hybrid.suite import DEFAULT_PATH

CONNECTION_STRING = "Endpoint=sb://contoso.servicebus.windows.net/;EntityPath=hc9"


@pytest.fixture(autouse=True)
def _no_env_connection_string(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("RELAY_CONNECTION_STRING", raising=False)


def test_parse_ports() -> None:
    """Parses comma-separated ports, ignoring blanks."""
    assert parse_ports("8080, 9000,") == (8080, 9000)
    assert parse_ports(" ") == ()


def test_parse_ports_rejects_garbage() -> None:
    with pytest.raises(argparse.ArgumentTypeError):
        parse_ports("80,http")


def test_resolve_host_from_connection_string() -> None:
    assert resolve_host(CONNECTION_STRING) == "contoso.servicebus.windows.net"
    assert resolve_host("contoso") == "contoso"
    assert resolve_host(None) is None


def test_resolve_path_precedence() -> None:
    """Explicit path, then the connection string's entity path, then default."""
    assert resolve_path("explicit", CONNECTION_STRING) == "explicit"
    assert resolve_path(None, CONNECTION_STRING) == "hc9"
    assert resolve_path(None, "contoso") == DEFAULT_PATH
    assert resolve_path(None, None) == DEFAULT_PATH


def test_parser_diag_flags() -> None:
    args = build_parser().parse_args(
        ["-v", "diag", "contoso", "-p", "--instance-ports", "3", "--extra-ports", "1,2"]
    )

    assert args.verbose
    assert args.command == "diag"
    assert args.target == "contoso"
    assert args.ports
    assert args.instance_ports == 3
    assert args.extra_ports == (1, 2)


def test_parser_hc_send() -> None:
    args = build_parser().parse_args(
        [
            "hc",
            "send",
            "--path",
            "hc1",
            "-n",
            "3",
            "-m",
            "post",
            "--request-length",
            "10",
        ]
    )

    assert args.hc_command == "send"
    assert args.path == "hc1"
    assert args.target is None
    assert args.number == 3
    assert args.method == "post"
    assert args.request_length == 10


@pytest.mark.parametrize("command", ["listen", "send"])
def test_connection_string_alone_is_the_target(command: str) -> None:
    """A lone connection string names the target, and its EntityPath the path."""
    args = build_parser().parse_args(["hc", command, CONNECTION_STRING])

    assert args.target == CONNECTION_STRING
    assert args.path is None
    assert resolve_path(args.path, args.target) == "hc9"


async def test_run_diag_passes_host_and_options() -> None:
    options = DiagnosticOptions(ports=True)
    output = io.StringIO()
    run_diagnostics = AsyncMock(return_value=0)

    with patch("relay_diag.cli.run_diagnostics", run_diagnostics):
        exit_code = await run_diag(CONNECTION_STRING, options, output)

    assert exit_code == 0
    run_diagnostics.assert_awaited_once_with(
        "contoso.servicebus.windows.net", output, options
    )


async def test_run_hc_unknown_transport_exits_non_zero() -> None:
    args = build_parser().parse_args(["hc", "list"])

    assert await run_hc("missing", "{}", args) == 1


async def test_run_hc_maps_setup_errors_to_exit_code() -> None:
    """Errors escaping a command become the process exit code."""
    args = build_parser().parse_args(["hc", "test"])
    failing = AsyncMock(side_effect=TimeoutError())

    with patch("relay_diag.cli.run_hybrid_connection_tests", failing):
        exit_code = await run_hc("loopback", "{}", args)

    assert exit_code == errno.ETIMEDOUT


async def test_run_hc_list_on_loopback(capsys: pytest.CaptureFixture[str]) -> None:
    """Management commands run against the loopback transport."""
    config = json.dumps({"paths": ["existing"]})
    args = build_parser().parse_args(["hc", "list"])

    assert await run_hc("loopback", config, args) == 0

    assert "existing" in capsys.readouterr().out


def test_main_exits_with_command_result() -> None:
    with (
        patch("relay_diag.cli.run_diag", AsyncMock(return_value=0)) as run,
        pytest.raises(SystemExit) as exc_info,
    ):
        main(["diag", "prod-by3-001", "-n"])

    assert exc_info.value.code == 0
    options = run.await_args.args[1]
    assert options.namespace
    assert not options.defaults
