"""In-memory registry of single-use file proxy tokens.

WHY: Slack's url_private links only work with the bot token, so the CDN
cannot fetch them directly. The bot hands the CDN an unguessable proxy URL
instead. Each URL carries a token that maps to one private Slack URL and
may be exchanged for the file exactly once.

HOW: Tokens are 32-character hex strings from secrets.token_hex(16). They
are stored in a plain dict keyed by token. Every read or mutation happens
under one threading.Lock, because Slack listeners run in slack-bolt worker
threads while the proxy runs on uvicorn's event loop.

RULES:
- mint() never fails and never returns a token that is currently live
- resolve_and_consume() pops the entry in one locked step; only the first
  caller for a token gets the locator, every later caller gets None
- invalidate() ignores unknown and already-consumed tokens
- expire() drops tokens older than the TTL, measured from creation
- Nothing is persisted; a restart forgets every token
"""

from __future__ import annotations

import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

logger = logging.getLogger(__name__)

TOKEN_BYTES = 16

# Default lifetime of an unconsumed token (seconds)
DEFAULT_TTL_SECONDS = 3600


@dataclass
class ProxyEntry:
    """A live token's target and creation time."""

    locator: str
    created_at: float


class TokenRegistry:
    """Thread-safe store mapping proxy tokens to private file URLs.

    WHY: The Slack handler mints tokens and the proxy endpoint consumes
    them from different threads. A single owner with locking keeps the
    at-most-once exchange intact.

    HOW: One dict, one lock. Logging happens outside the lock.

    RULES:
    - All public methods acquire self._lock
    - Locators are never logged in full (they identify private files)
    """

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        self._entries: Dict[str, ProxyEntry] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, token: object) -> bool:
        with self._lock:
            return token in self._entries

    def mint(self, locator: str) -> str:
        """Store ``locator`` under a fresh random token and return the token."""
        with self._lock:
            token = secrets.token_hex(TOKEN_BYTES)
            while token in self._entries:
                token = secrets.token_hex(TOKEN_BYTES)
            self._entries[token] = ProxyEntry(locator=locator, created_at=time.time())

        logger.debug("Minted proxy token %s", token)
        return token

    def resolve_and_consume(self, token: str) -> Optional[str]:
        """Remove ``token`` and return its locator, or None if it is not live.

        RULES:
        - The lookup and the removal are one dict.pop under the lock
        - A consumed token can never be resolved again
        """
        with self._lock:
            entry = self._entries.pop(token, None)

        if entry is None:
            return None

        logger.debug("Consumed proxy token %s", token)
        return entry.locator

    def invalidate(self, tokens: Iterable[str]) -> int:
        """Remove every token in ``tokens`` that is still live.

        Returns the number of tokens actually removed.
        """
        removed = 0
        with self._lock:
            for token in tokens:
                if self._entries.pop(token, None) is not None:
                    removed += 1

        if removed:
            logger.debug("Invalidated %d unconsumed proxy token(s)", removed)
        return removed

    def expire(self, now: Optional[float] = None) -> int:
        """Drop tokens older than the TTL and return how many were dropped.

        WHY: Cleanup normally runs right after each upload, but a crashed
        handler must not leak tokens until restart.
        """
        if now is None:
            now = time.time()

        with self._lock:
            stale = [
                token for token, entry in self._entries.items()
                if now - entry.created_at > self._ttl_seconds
            ]
            for token in stale:
                del self._entries[token]

        if stale:
            logger.info("Expired %d stale proxy token(s)", len(stale))
        return len(stale)
