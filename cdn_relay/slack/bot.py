"""Slack bot: message handler that relays shared files to the CDN.

WHY: Users drop files into a Slack channel and want public CDN links back.
The CDN can't read Slack's private file URLs, so for every file the bot
mints a single-use proxy token, gives the CDN the proxy URL, and reports
the published URLs in the thread.

HOW: Uses slack-bolt with Socket Mode (no public URL needed for Slack
itself; only the file proxy is public). create_app() registers a small
dispatch table of handlers and binds each to the explicit Settings,
TokenRegistry, and CDN client factory it needs.

RULES:
- Only messages with files in the watched channel are handled
- Bot messages, edits, and deletions are ignored
- One token per file, all minted before the CDN is called
- Every token minted for a message is invalidated in a finally block,
  after the CDN call has returned (it fetches the files synchronously)
- Upload failures become a chat reply, never an unhandled exception
- Runnable as: python -m cdn_relay
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

from slack_bolt import App
from slack_sdk.errors import SlackApiError

from cdn_relay.cdn.client import CDNClient
from cdn_relay.config import Settings
from cdn_relay.proxy.tokens import TokenRegistry
from cdn_relay.slack.messages import (
    ACTION_JOIN_CHANNEL,
    LOADING_TEXT,
    build_error_text,
    build_join_confirmation_text,
    build_join_error_text,
    build_success_text,
)

logger = logging.getLogger(__name__)

CDNClientFactory = Callable[[], CDNClient]

# Message subtypes that never carry new uploads
_IGNORED_SUBTYPES = frozenset({
    "bot_message",
    "message_changed",
    "message_deleted",
    "channel_join",
    "channel_leave",
})


# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------


def create_app(
    settings: Settings,
    registry: TokenRegistry,
    cdn_factory: Optional[CDNClientFactory] = None,
) -> App:
    """Create the Bolt app and register the event and action handlers.

    WHY: The registry must be the same instance the proxy app consumes
    from, so it is injected here instead of living in a module global.

    RULES:
    - cdn_factory defaults to a CDNClient built from settings
    - All handlers are registered before returning
    """
    if cdn_factory is None:
        def cdn_factory() -> CDNClient:
            return CDNClient(settings.cdn_url, settings.cdn_api_key)

    app_kwargs = {"token": settings.slack_bot_token}  # type: Dict[str, Any]
    if settings.slack_signing_secret:
        app_kwargs["signing_secret"] = settings.slack_signing_secret
    app = App(**app_kwargs)

    def on_message(event: Dict[str, Any], say: Any, client: Any, logger: Any) -> None:
        handle_file_message(
            event, say, client, logger,
            settings=settings, registry=registry, cdn_factory=cdn_factory,
        )

    def on_join_channel(ack: Any, body: Dict[str, Any], client: Any, logger: Any) -> None:
        handle_join_channel(ack, body, client, logger, settings=settings)

    app.event("message")(on_message)
    app.action(ACTION_JOIN_CHANNEL)(on_join_channel)

    return app


# ---------------------------------------------------------------------------
# Proxy URLs
# ---------------------------------------------------------------------------


def build_proxy_url(base_url: str, token: str, filename: str = "") -> str:
    """Public URL for a proxy token, with the filename as a decorative suffix.

    The proxy ignores everything after the token; the name only helps the
    CDN keep the original filename.
    """
    url = "{}/{}".format(base_url.rstrip("/"), token)
    if filename:
        url = "{}/{}".format(url, quote(filename, safe=""))
    return url


# ---------------------------------------------------------------------------
# Event handlers
# ---------------------------------------------------------------------------


def handle_file_message(
    event: Dict[str, Any],
    say: Any,
    client: Any,
    logger: Any,
    settings: Settings,
    registry: TokenRegistry,
    cdn_factory: CDNClientFactory,
) -> None:
    """Relay the files of one message to the CDN and reply in-thread.

    HOW: Mint a token per file, post a loading reply, submit the proxy
    URLs to the CDN, then edit the loading reply with the result.

    RULES:
    - If settings.channel_id is set, other channels are ignored
    - A file without url_private aborts the whole message with an error reply
    - Tokens are invalidated whether the upload worked or not
    """
    if event.get("bot_id") or event.get("subtype") in _IGNORED_SUBTYPES:
        return

    channel = event.get("channel", "")
    if settings.channel_id and channel != settings.channel_id:
        return

    files = event.get("files") or []
    if not files:
        return

    message_ts = event.get("ts", "")
    thread_ts = event.get("thread_ts") or message_ts

    tokens = []  # type: List[str]
    loading_ts = ""

    try:
        proxy_urls = []
        for file_data in files:
            locator = file_data.get("url_private")
            if not locator:
                raise ValueError(
                    "File {} is missing a private URL".format(file_data.get("id", "?"))
                )
            token = registry.mint(locator)
            tokens.append(token)
            proxy_urls.append(
                build_proxy_url(settings.public_base_url, token, file_data.get("name", ""))
            )

        loading = say(text=LOADING_TEXT, thread_ts=thread_ts)
        loading_ts = loading.get("ts", "") if loading else ""

        with cdn_factory() as cdn:
            result = cdn.upload(proxy_urls)

        _reply(client, channel, thread_ts, loading_ts, build_success_text(result.deployed_urls))

    except Exception as exc:
        logger.exception("Upload failed for message %s", message_ts)
        _reply(
            client, channel, thread_ts, loading_ts,
            build_error_text(exc, settings.support_user_id),
        )

    finally:
        registry.invalidate(tokens)


# ---------------------------------------------------------------------------
# Action handlers (Block Kit interactions)
# ---------------------------------------------------------------------------


def handle_join_channel(
    ack: Any,
    body: Dict[str, Any],
    client: Any,
    logger: Any,
    settings: Settings,
) -> None:
    """Invite the user who clicked the join button to the upload channel.

    RULES:
    - ack() FIRST
    - The button's value names the channel; falls back to settings.channel_id
    - already_in_channel counts as success
    """
    ack()

    user_id = body.get("user", {}).get("id", "")
    channel_id = settings.channel_id
    for action in body.get("actions", []):
        if action.get("action_id") == ACTION_JOIN_CHANNEL and action.get("value"):
            channel_id = action["value"]
            break

    source_channel = (body.get("channel") or {}).get("id", "")

    if not user_id or not channel_id:
        logger.warning("Join request without user or channel: user=%r channel=%r",
                       user_id, channel_id)
        return

    try:
        client.conversations_invite(channel=channel_id, users=user_id)
    except SlackApiError as exc:
        error = exc.response.get("error", "unknown_error")
        if error != "already_in_channel":
            logger.warning("Failed to invite %s to %s: %s", user_id, channel_id, error)
            _notify_user(client, source_channel, user_id, build_join_error_text(error))
            return

    logger.info("Added %s to %s", user_id, channel_id)
    _notify_user(client, source_channel, user_id, build_join_confirmation_text(channel_id))


# ---------------------------------------------------------------------------
# Slack message helpers
# ---------------------------------------------------------------------------


def _reply(
    client: Any,
    channel: str,
    thread_ts: str,
    loading_ts: str,
    text: str,
) -> None:
    """Edit the loading reply, or post a new threaded reply if there is none."""
    try:
        if loading_ts:
            client.chat_update(channel=channel, ts=loading_ts, text=text)
        else:
            client.chat_postMessage(channel=channel, thread_ts=thread_ts, text=text)
    except Exception:
        logger.exception("Failed to post reply in %s", channel)


def _notify_user(client: Any, channel: str, user_id: str, text: str) -> None:
    """Ephemeral note in the button's channel, or a DM when there is none."""
    try:
        if channel:
            client.chat_postEphemeral(channel=channel, user=user_id, text=text)
        else:
            client.chat_postMessage(channel=user_id, text=text)
    except Exception:
        logger.exception("Failed to notify user %s", user_id)
