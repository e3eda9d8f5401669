"""Command-line entry point that runs the Slack bot and the file proxy.

WHY: The bot and the proxy must share one TokenRegistry, so they run in
the same process: the bot mints tokens, the proxy consumes them.

HOW: Loads Settings, builds the registry, starts slack-bolt's Socket Mode
connection in its background threads, then serves the proxy app with
uvicorn in the foreground until interrupted.

RULES:
- --port overrides HOST_PORT
- --proxy-only skips the Slack connection (useful behind a second bot)
- Configuration errors exit with status 2 and a readable message
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

import uvicorn

from cdn_relay import __version__
from cdn_relay.config import Settings, load_settings
from cdn_relay.proxy.app import create_app as create_proxy_app
from cdn_relay.proxy.tokens import TokenRegistry

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cdn-relay",
        description="Relay files shared in Slack to the CDN through single-use proxy links.",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port the file proxy listens on (default: HOST_PORT or 3000).",
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Interface the file proxy binds to (default: 0.0.0.0).",
    )
    parser.add_argument(
        "--proxy-only",
        action="store_true",
        help="Serve the file proxy without connecting to Slack.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: LOG_LEVEL or INFO).",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s {}".format(__version__),
    )
    return parser


def _start_slack(settings: Settings, registry: TokenRegistry):
    """Open the Socket Mode connection without blocking the caller."""
    from slack_bolt.adapter.socket_mode import SocketModeHandler

    from cdn_relay.slack.bot import create_app as create_slack_app

    app = create_slack_app(settings, registry)
    handler = SocketModeHandler(app, settings.slack_app_token)
    handler.connect()
    logger.info("Slack bot connected in Socket Mode")
    if settings.channel_id:
        logger.info("Watching channel: %s", settings.channel_id)
    else:
        logger.info("Watching all channels the bot is in")
    return handler


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``cdn-relay`` and ``python -m cdn_relay``.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings()
    except ValueError as exc:
        print("Error: {}".format(exc), file=sys.stderr)
        sys.exit(2)

    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    registry = TokenRegistry(ttl_seconds=settings.token_ttl_seconds)
    port = args.port or settings.host_port

    handler = None
    if not args.proxy_only:
        handler = _start_slack(settings, registry)

    proxy_app = create_proxy_app(
        registry,
        bot_token=settings.slack_bot_token,
        channel_id=settings.channel_id,
    )

    logger.info("File proxy server running on port %d", port)
    logger.info("Public proxy base URL: %s", settings.public_base_url)

    try:
        uvicorn.run(proxy_app, host=args.host, port=port, log_level="warning")
    finally:
        if handler is not None:
            handler.close()


if __name__ == "__main__":
    main()
