"""Slack bot integration for the CDN relay.

WHY: Users share files in a Slack channel and expect CDN links back in
the thread, without leaving Slack.

HOW: The bot runs slack-bolt's Socket Mode adapter in the same process as
the file proxy. Message handlers mint proxy tokens and call the CDN
through httpx.

RULES:
- Socket Mode requires SLACK_BOT_TOKEN and SLACK_APP_TOKEN
- All Slack actions must be ack()'d within 3 seconds
"""
