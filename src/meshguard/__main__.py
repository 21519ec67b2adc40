"""MeshGuard CLI entrypoint.

Usage:
    python -m meshguard check read:contacts        # Print the policy decision
    python -m meshguard enforce write:email        # Exit 1 when denied
    python -m meshguard health                     # Gateway health
    python -m meshguard agents                     # List agents (admin)
    python -m meshguard policies                   # List policies (admin)
    python -m meshguard audit --limit 20 --decision deny
    python -m meshguard --version
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence
from typing import Any

import httpx

from meshguard import __version__
from meshguard.client import MeshGuardClient
from meshguard.exceptions import GovernanceError, PolicyDeniedError
from meshguard.logging import bind_trace_id, clear_logging_context, configure_logging

EXIT_OK = 0
EXIT_DENIED = 1
EXIT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="meshguard",
        description="MeshGuard: governance checks for AI agent actions",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"MeshGuard {__version__}",
    )
    parser.add_argument("--gateway-url", default=None, help="Gateway base URL")
    parser.add_argument("--agent-token", default=None, help="Agent bearer token")
    parser.add_argument("--admin-token", default=None, help="Admin token for admin commands")
    parser.add_argument(
        "--timeout", type=float, default=None, help="Request timeout in seconds"
    )
    parser.add_argument("--trace-id", default=None, help="Trace ID for correlation")
    parser.add_argument(
        "--log-level", default="warning", help="Log level (default: warning)"
    )

    commands = parser.add_subparsers(dest="command", required=True)
    for name, help_text in (
        ("check", "Check whether an action is allowed"),
        ("enforce", "Enforce an action, failing when denied"),
    ):
        command = commands.add_parser(name, help=help_text)
        command.add_argument("action", help="Action to evaluate, e.g. read:contacts")
        command.add_argument("--resource", default=None, help="Optional resource")

    commands.add_parser("health", help="Show gateway health")
    commands.add_parser("agents", help="List agents (requires admin token)")
    commands.add_parser("policies", help="List policies (requires admin token)")

    audit = commands.add_parser("audit", help="Show audit log entries (requires admin token)")
    audit.add_argument("--limit", type=int, default=50, help="Maximum entries (default: 50)")
    audit.add_argument(
        "--decision", choices=["allow", "deny"], default=None, help="Filter by decision"
    )
    return parser


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2))


async def run_command(
    args: argparse.Namespace,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> int:
    """Run one CLI command and return its exit code."""
    client = MeshGuardClient.from_env(
        gateway_url=args.gateway_url,
        agent_token=args.agent_token,
        admin_token=args.admin_token,
        timeout=args.timeout,
        trace_id=args.trace_id,
        transport=transport,
    )
    bind_trace_id(client.trace_id)
    try:
        async with client:
            if args.command == "check":
                decision = await client.check(args.action, args.resource)
                _print_json(decision.model_dump())
                return EXIT_OK if decision.allowed else EXIT_DENIED
            if args.command == "enforce":
                decision = await client.enforce(args.action, args.resource)
                _print_json(decision.model_dump())
                return EXIT_OK
            if args.command == "health":
                healthy = await client.is_healthy()
                _print_json({"gateway_url": client.gateway_url, "healthy": healthy})
                return EXIT_OK if healthy else EXIT_DENIED
            if args.command == "agents":
                agents = await client.list_agents()
                _print_json([agent.model_dump(by_alias=True) for agent in agents])
                return EXIT_OK
            if args.command == "policies":
                policies = await client.list_policies()
                _print_json([policy.model_dump() for policy in policies])
                return EXIT_OK
            if args.command == "audit":
                entries = await client.get_audit_log(limit=args.limit, decision=args.decision)
                _print_json([entry.model_dump(by_alias=True) for entry in entries])
                return EXIT_OK
    except PolicyDeniedError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_DENIED
    except GovernanceError as exc:
        print(f"{exc.kind.value}: {exc}", file=sys.stderr)
        return EXIT_ERROR
    finally:
        clear_logging_context()
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level, json_output=False)
    try:
        exit_code = asyncio.run(run_command(args))
    except ValueError as exc:
        parser.error(str(exc))
    except httpx.TransportError as exc:
        print(f"Could not reach gateway: {exc}", file=sys.stderr)
        exit_code = EXIT_ERROR
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
