"""Message text and Block Kit builders for the Slack bot.

WHY: The bot posts a handful of fixed messages: a loading reply, the list
of uploaded URLs, an error report, and the join-channel button. Keeping
them here keeps bot.py about event handling only.

RULES:
- Functions return plain strings or list[dict] Block Kit blocks
- action_id values must match the handler registrations in bot.py
- Python 3.9+ compatible (no match/case, no PEP 604 unions)
"""

from __future__ import annotations

from typing import Any, Dict, List

# Action IDs, must match app.action() registrations in bot.py
ACTION_JOIN_CHANNEL = "join_channel"

LOADING_TEXT = ":loading-tumbleweed: uploady-ing..."


def build_success_text(deployed_urls: List[str]) -> str:
    """Reply listing the public URLs, one per line."""
    return "your files have been uploaded!\n{}".format("\n".join(deployed_urls))


def build_error_text(error: object, support_user_id: str = "") -> str:
    """Reply shown when the upload failed.

    RULES:
    - The error text goes in a code block
    - A support mention is added only when support_user_id is set
    """
    text = "sorry, something went wrong :(\n```\n{}\n```".format(error)
    if support_user_id:
        text += "\n\ndm <@{}> about it?".format(support_user_id)
    return text


def build_join_channel_blocks(channel_id: str) -> List[Dict[str, Any]]:
    """Blocks offering a button that invites the clicker to the channel.

    The button's value carries the channel ID so the action handler works
    even when the message was posted somewhere else (e.g. by a workflow).
    """
    if channel_id:
        prompt = "Want to share files through the CDN? Join <#{}> to get started.".format(
            channel_id
        )
    else:
        prompt = "Want to share files through the CDN? Join the upload channel to get started."

    button = {
        "type": "button",
        "text": {"type": "plain_text", "text": "Join channel"},
        "style": "primary",
        "action_id": ACTION_JOIN_CHANNEL,
    }  # type: Dict[str, Any]
    # Slack rejects an empty button value
    if channel_id:
        button["value"] = channel_id

    return [
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": prompt},
        },
        {
            "type": "actions",
            "elements": [button],
        },
    ]


def build_join_confirmation_text(channel_id: str) -> str:
    return "You're in! Post files in <#{}> and I'll put them on the CDN.".format(channel_id)


def build_join_error_text(error: str) -> str:
    return "Couldn't add you to the channel ({}). Ask an admin to invite you.".format(error)
