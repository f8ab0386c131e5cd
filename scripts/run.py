#!/usr/bin/env python3
"""Server entrypoint — wires notifications, alerting and the push server.

Usage::

    # Run with default config
    python scripts/run.py

    # Custom config file
    python scripts/run.py --config config/settings.yaml

    # Override log level / port
    python scripts/run.py --log-level DEBUG --port 9090
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys

import structlog

from opsnotify.core.config import load_settings
from opsnotify.core.logging import setup_logging
from opsnotify.push.factory import create_push_stack
from opsnotify.push.web import start_push_server

logger = structlog.get_logger(__name__)


async def run(args: argparse.Namespace) -> int:
    """Start the push server and run until interrupted."""
    settings = load_settings(args.config)
    setup_logging(level=args.log_level or settings.logging.level, fmt=settings.logging.format)

    alerts = settings.alerts
    logger.info(
        "server_starting",
        pagerduty=alerts.pagerduty.configured,
        opsgenie=alerts.opsgenie.configured,
        slack=alerts.slack.configured,
        discord=alerts.discord.configured,
        teams_lookup=bool(settings.teams.membership_url),
    )

    stack = create_push_stack(settings)

    host = args.host or settings.push_server.host
    port = args.port or settings.push_server.port
    try:
        runner = await start_push_server(stack.app, host=host, port=port)
    except OSError as exc:
        logger.error("server_bind_failed", host=host, port=port, error=str(exc))
        print(f"Could not listen on {host}:{port}: {exc}", file=sys.stderr)
        await stack.close()
        return 1

    logger.info(
        "server_running",
        host=host,
        port=port,
        ws_path=settings.push_server.ws_path,
        http_api=settings.push_server.enable_http_api,
    )

    # ── Wait for shutdown signal ─────────────────────────────────
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("shutdown_signal_received")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # No loop signal handlers on Windows
            pass

    try:
        await stop_event.wait()
    except KeyboardInterrupt:
        logger.info("keyboard_interrupt")

    # ── Graceful shutdown ────────────────────────────────────────
    logger.info("server_shutting_down", clients=stack.server.client_count)
    await runner.cleanup()
    await stack.close()
    logger.info("server_stopped")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Run the alerting and notification push server.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override: DEBUG, INFO, WARNING, ERROR",
    )
    parser.add_argument("--host", default=None, help="Bind address override")
    parser.add_argument("--port", type=int, default=None, help="Port override")
    args = parser.parse_args()

    code = asyncio.run(run(args))
    sys.exit(code)


if __name__ == "__main__":
    main()
