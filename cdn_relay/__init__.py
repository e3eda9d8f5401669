"""CDN Relay: Slack bot that publishes shared files to a CDN.

WHY: Files posted in Slack live behind private URLs that need the bot
token. The CDN upload service can only fetch public URLs. This package
bridges the two with single-use proxy links.

HOW: Two parts share one in-memory TokenRegistry:
  slack: Socket Mode bot that mints tokens and calls the CDN
  proxy: FastAPI app that trades each token for the file, once

RULES:
- A proxy token works for exactly one download
- Tokens live only in memory; a restart forgets them
"""

__version__ = "0.1.0"
