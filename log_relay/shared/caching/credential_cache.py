"""
Credential caching for the log relay.

Caches short-lived access credentials per source endpoint so repeated
runs in one process do not hit the token endpoint every time. Concurrent
misses for the same endpoint share a single in-flight exchange.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict

import structlog

from ..models import Credential

logger = structlog.get_logger(__name__)

TokenFetcher = Callable[[str], Awaitable[str]]

# Conservative cache lifetime, shorter than typical token expiry.
DEFAULT_TTL_SECONDS = 3600


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CredentialCache:
    """
    TTL cache of access credentials keyed by source endpoint.

    Entries are only evicted when their TTL has elapsed (or on explicit
    invalidation). Failed exchanges are never cached: the error goes to
    every caller waiting on that exchange and the next call retries.
    """

    def __init__(
        self,
        fetch_token: TokenFetcher,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.fetch_token = fetch_token
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: Dict[str, Credential] = {}
        self._inflight: Dict[str, asyncio.Future] = {}
        self.logger = logger.bind(component="credential_cache")
        self.stats = {
            'hits': 0,
            'misses': 0,
            'coalesced': 0,
            'exchanges': 0,
            'failures': 0,
        }

    async def get(self, endpoint: str) -> Credential:
        """Return a valid credential for the endpoint, exchanging one if needed."""
        entry = self._entries.get(endpoint)
        if entry is not None:
            if not entry.is_expired(self.ttl_seconds, self.clock()):
                self.stats['hits'] += 1
                return entry
            del self._entries[endpoint]
            self.logger.debug("Credential expired", endpoint=endpoint)

        inflight = self._inflight.get(endpoint)
        if inflight is not None:
            self.stats['coalesced'] += 1
            return await asyncio.shield(inflight)

        self.stats['misses'] += 1
        future = asyncio.get_running_loop().create_future()
        self._inflight[endpoint] = future
        try:
            credential = await self._exchange(endpoint)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so a lone caller does not trigger asyncio's warning.
            future.exception()
            raise
        else:
            self._entries[endpoint] = credential
            future.set_result(credential)
            return credential
        finally:
            self._inflight.pop(endpoint, None)

    async def _exchange(self, endpoint: str) -> Credential:
        self.stats['exchanges'] += 1
        try:
            token = await self.fetch_token(endpoint)
        except Exception as e:
            self.stats['failures'] += 1
            self.logger.warning("Credential exchange failed", endpoint=endpoint, error=str(e))
            raise

        self.logger.info("Credential obtained", endpoint=endpoint, ttl_seconds=self.ttl_seconds)
        return Credential(token=token, obtained_at=self.clock())

    def invalidate(self, endpoint: str) -> bool:
        """Drop the cached credential for an endpoint."""
        return self._entries.pop(endpoint, None) is not None

    def clear(self) -> None:
        """Clear all cached credentials."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total_requests = self.stats['hits'] + self.stats['misses'] + self.stats['coalesced']
        return {
            **self.stats,
            'size': len(self._entries),
            'hit_rate': self.stats['hits'] / total_requests if total_requests > 0 else 0,
        }

