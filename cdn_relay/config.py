"""Configuration loading from the environment and .env file.

WHY: The bot needs Slack credentials, the CDN endpoint and key, the port
the proxy listens on, and the externally visible address the CDN uses to
reach the proxy. Keeping all of it in one frozen Settings object means the
Slack handlers and the proxy app receive their configuration explicitly
instead of reading os.environ at call time.

HOW: python-dotenv loads the .env file on import. load_settings() reads
each variable, applies defaults, validates required values, and returns a
Settings dataclass.

RULES:
- Required: SLACK_BOT_TOKEN, SLACK_APP_TOKEN, CDN_URL, CDN_API_KEY
- Either PUBLIC_BASE_URL or SERVER_HOST must be set
- SERVER_PROTOCOL defaults to "https"
- Missing required values raise ValueError naming every missing variable
- Secrets are never logged
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

# Load .env from the directory the bot is started in
load_dotenv()

DEFAULT_HOST_PORT = 3000
DEFAULT_SERVER_PROTOCOL = "https"
DEFAULT_TOKEN_TTL_SECONDS = 3600
DEFAULT_LOG_LEVEL = "INFO"

_REQUIRED = ("SLACK_BOT_TOKEN", "SLACK_APP_TOKEN", "CDN_URL", "CDN_API_KEY")


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for the bot and the file proxy.

    RULES:
    - public_base_url never ends with a slash
    - channel_id empty means every channel the bot is in is watched
    - support_user_id empty means error replies carry no mention
    """

    slack_bot_token: str
    slack_app_token: str
    cdn_url: str
    cdn_api_key: str
    public_base_url: str
    slack_signing_secret: str = ""
    host_port: int = DEFAULT_HOST_PORT
    channel_id: str = ""
    support_user_id: str = ""
    token_ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS
    log_level: str = DEFAULT_LOG_LEVEL


def build_public_base_url(
    protocol: str,
    host: str,
    port: Optional[str] = None,
) -> str:
    """Assemble the externally reachable base URL of the proxy.

    WHY: The CDN fetches files from outside the network, so proxy URLs must
    use the public host and port rather than the local listen port.

    RULES:
    - Port is appended only when given
    - Protocol defaults to https when empty
    """
    protocol = (protocol or DEFAULT_SERVER_PROTOCOL).strip().rstrip(":/")
    base = "{}://{}".format(protocol, host.strip().rstrip("/"))
    if port:
        base = "{}:{}".format(base, port.strip())
    return base


def _parse_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError("{} must be an integer, got {!r}".format(name, raw))


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from environment variables.

    WHY: Every entry point (bot, proxy, CLI) needs the same validated
    configuration, and tests need to supply their own mapping.

    HOW: Reads from ``env`` (defaults to os.environ, already populated from
    .env by python-dotenv), checks required keys, then derives the public
    base URL from PUBLIC_BASE_URL or SERVER_PROTOCOL/SERVER_HOST/SERVER_PORT.

    RULES:
    - Raises ValueError listing all missing required variables at once
    - PUBLIC_BASE_URL wins over SERVER_* when both are set
    """
    if env is None:
        env = os.environ

    values = {name: env.get(name, "").strip() for name in _REQUIRED}
    missing = [name for name, value in values.items() if not value]

    public_base_url = env.get("PUBLIC_BASE_URL", "").strip().rstrip("/")
    server_host = env.get("SERVER_HOST", "").strip()
    if not public_base_url and not server_host:
        missing.append("SERVER_HOST (or PUBLIC_BASE_URL)")

    if missing:
        raise ValueError(
            "Missing required configuration: {}. "
            "Add them to the environment or the .env file.".format(", ".join(missing))
        )

    if not public_base_url:
        public_base_url = build_public_base_url(
            env.get("SERVER_PROTOCOL", ""),
            server_host,
            env.get("SERVER_PORT", "").strip() or None,
        )

    return Settings(
        slack_bot_token=values["SLACK_BOT_TOKEN"],
        slack_app_token=values["SLACK_APP_TOKEN"],
        cdn_url=values["CDN_URL"],
        cdn_api_key=values["CDN_API_KEY"],
        public_base_url=public_base_url,
        slack_signing_secret=env.get("SLACK_SIGNING_SECRET", "").strip(),
        host_port=_parse_int(env, "HOST_PORT", DEFAULT_HOST_PORT),
        channel_id=env.get("CHANNEL_ID", "").strip(),
        support_user_id=env.get("SUPPORT_USER_ID", "").strip(),
        token_ttl_seconds=_parse_int(env, "TOKEN_TTL_SECONDS", DEFAULT_TOKEN_TTL_SECONDS),
        log_level=env.get("LOG_LEVEL", DEFAULT_LOG_LEVEL).strip().upper() or DEFAULT_LOG_LEVEL,
    )
