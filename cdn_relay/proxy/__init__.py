"""File proxy package: single-use public links to private Slack files.

RULES:
- TokenRegistry is the only shared mutable state
- The proxy app never mints tokens, it only consumes them
"""

from cdn_relay.proxy.tokens import TokenRegistry

__all__ = ["TokenRegistry"]
