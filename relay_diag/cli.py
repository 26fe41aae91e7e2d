"""CLI entry point for relay diagnostics and hybrid connection tests."""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from typing import Any, TextIO

from relay_diag.connection import parse_connection_target, resolve_connection_string
from relay_diag.diagnostics.commands import DiagnosticOptions, run_diagnostics
from relay_diag.diagnostics.ports import DEFAULT_PROBE_TIMEOUT
from relay_diag.errors import exit_code_for_exception, log_exception
from relay_diag.hybrid.listen import ListenOptions, run_listener
from relay_diag.hybrid.manage import create_endpoint, delete_endpoint, list_endpoints
from relay_diag.hybrid.messages import DEFAULT_LISTEN_RESPONSE, get_message_body
from relay_diag.hybrid.send import send_requests
from relay_diag.hybrid.suite import DEFAULT_PATH, run_hybrid_connection_tests
from relay_diag.transports.base import RelayTransport
from relay_diag.transports.loading import load_transport_manifest

log = logging.getLogger("relay_diag")


def parse_ports(value: str) -> Sequence[int]:
    """Parse comma-separated port numbers."""
    if not value.strip():
        return ()
    try:
        return tuple(int(p.strip()) for p in value.split(",") if p.strip())
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port list: {value!r}") from None


def parse_bool(value: str) -> bool:
    if value.lower() in {"true", "yes", "1"}:
        return True
    if value.lower() in {"false", "no", "0"}:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean: {value!r}")


def resolve_host(target: str | None) -> str | None:
    """Return the namespace host named by the argument or the environment."""
    connection_string = resolve_connection_string(target)
    if connection_string is None:
        return None
    return parse_connection_target(connection_string).host


def resolve_path(path: str | None, target: str | None) -> str:
    """Pick the endpoint path from the argument, the connection string, or default."""
    if path:
        return path
    connection_string = resolve_connection_string(target)
    if connection_string is not None:
        entity_path = parse_connection_target(connection_string).entity_path
        if entity_path:
            return entity_path
    return DEFAULT_PATH


async def run_diag(
    target: str | None, options: DiagnosticOptions, output: TextIO
) -> int:
    """Run the ``diag`` command and return its exit code."""
    try:
        host = resolve_host(target)
        return await run_diagnostics(host, output, options)
    except Exception as e:
        log_exception(log, e)
        return exit_code_for_exception(e)


async def run_hc_command(transport: RelayTransport, args: argparse.Namespace) -> int:
    """Dispatch an ``hc`` subcommand against an open transport."""
    match args.hc_command:
        case "create":
            return await create_endpoint(
                transport,
                args.path,
                requires_client_authorization=args.requires_client_auth,
            )
        case "list":
            return await list_endpoints(transport, sys.stdout)
        case "delete":
            return await delete_endpoint(transport, args.path)
        case "listen":
            response = get_message_body(
                args.response, args.response_length, DEFAULT_LISTEN_RESPONSE
            )
            options = ListenOptions(
                response=response or "",
                chunk_length=args.response_chunk_length,
                status_code=args.status_code,
                reason=args.status_description,
            )
            return await run_listener(
                transport, resolve_path(args.path, args.target), options
            )
        case "send":
            return await send_requests(
                transport,
                resolve_path(args.path, args.target),
                count=args.number,
                method=args.method,
                body=get_message_body(args.request, args.request_length),
            )
        case "test":
            return await run_hybrid_connection_tests(
                transport,
                resolve_path(args.path, args.target),
                filter_pattern=args.tests,
            )
        case _:
            raise ValueError(f"Unknown hc command: {args.hc_command}")


async def run_hc(
    transport_key: str, transport_config_json: str, args: argparse.Namespace
) -> int:
    """Load the transport, run an ``hc`` subcommand and return its exit code."""
    try:
        log.debug("Loading transport: %s", transport_key)
        manifest = load_transport_manifest(transport_key)

        config_dict: dict[str, Any] = json.loads(transport_config_json)
        config = manifest.config_cls(**config_dict)

        async with manifest.transport_factory(config) as transport:
            return await run_hc_command(transport, args)
    except Exception as e:
        log_exception(log, e)
        return exit_code_for_exception(e)


def add_target_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "target",
        nargs="?",
        help="Relay namespace, host name or connection string "
        "(defaults to $RELAY_CONNECTION_STRING)",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all commands."""
    parser = argparse.ArgumentParser(
        prog="relay-diag", description="Relay diagnostics and conformance tests"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--transport",
        default="loopback",
        help="Transport key used by hc commands (e.g. loopback)",
    )
    parser.add_argument(
        "--transport-config",
        default="{}",
        help="JSON configuration for the transport",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    diag = commands.add_parser("diag", help="Namespace and network diagnostics")
    add_target_argument(diag)
    diag.add_argument("-a", "--all", action="store_true", help="Run all sections")
    diag.add_argument(
        "-n", "--namespace", action="store_true", help="Show namespace details"
    )
    diag.add_argument("--netstat", action="store_true", help="Show netstat output")
    diag.add_argument("-p", "--ports", action="store_true", help="Probe relay ports")
    diag.add_argument(
        "--instance-ports",
        type=int,
        metavar="N",
        help="Probe ports on N gateway instances",
    )
    diag.add_argument(
        "-o", "--os", action="store_true", help="Show platform information"
    )
    diag.add_argument(
        "--extra-ports",
        type=parse_ports,
        default=(),
        help="Comma-separated ports to probe in addition to the relay ports",
    )
    diag.add_argument(
        "--probe-timeout",
        type=float,
        default=DEFAULT_PROBE_TIMEOUT,
        help="Seconds allowed per TCP connect",
    )

    hc = commands.add_parser("hc", help="Hybrid connection commands")
    hc_commands = hc.add_subparsers(dest="hc_command", required=True)

    create = hc_commands.add_parser("create", help="Create an endpoint")
    create.add_argument("path", help="Endpoint path")
    add_target_argument(create)
    create.add_argument(
        "--requires-client-auth",
        type=parse_bool,
        default=True,
        help="Whether senders must present a token (default: true)",
    )

    hc_list = hc_commands.add_parser("list", help="List endpoints")
    add_target_argument(hc_list)

    delete = hc_commands.add_parser("delete", help="Delete an endpoint")
    delete.add_argument("path", help="Endpoint path")
    add_target_argument(delete)

    listen = hc_commands.add_parser("listen", help="Listen and answer requests")
    add_target_argument(listen)
    listen.add_argument("--path", help="Endpoint path")
    listen.add_argument("--response", help="Response body to return")
    listen.add_argument("--response-length", type=int, help="Response length")
    listen.add_argument(
        "--response-chunk-length", type=int, help="Bytes per response write"
    )
    listen.add_argument(
        "--status-code", type=int, default=200, help="HTTP status code to return"
    )
    listen.add_argument("--status-description", help="HTTP reason phrase to return")

    send = hc_commands.add_parser("send", help="Send requests to an endpoint")
    add_target_argument(send)
    send.add_argument("--path", help="Endpoint path")
    send.add_argument(
        "-n", "--number", type=int, default=1, help="Number of requests to send"
    )
    send.add_argument("-m", "--method", default="GET", help="HTTP method")
    send.add_argument("--request", help="Request body")
    send.add_argument("--request-length", type=int, help="Request body length")

    test = hc_commands.add_parser("test", help="Run the hybrid connection suite")
    add_target_argument(test)
    test.add_argument("--path", help="Endpoint path")
    test.add_argument(
        "-t", "--tests", help="Regular expression selecting test cases by name"
    )

    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    if args.command == "diag":
        options = DiagnosticOptions(
            show_all=args.all,
            namespace=args.namespace,
            netstat=args.netstat,
            ports=args.ports,
            platform=args.os,
            instance_count=args.instance_ports,
            extra_ports=args.extra_ports,
            probe_timeout=args.probe_timeout,
        )
        exit_code = asyncio.run(run_diag(args.target, options, sys.stdout))
    else:
        try:
            exit_code = asyncio.run(
                run_hc(args.transport, args.transport_config, args)
            )
        except KeyboardInterrupt:
            log.info("Interrupted")
            exit_code = 130
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
