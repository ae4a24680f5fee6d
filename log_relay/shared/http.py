"""
Shared HTTP session handling.

Components talking to remote services hold one aiohttp session for the
lifetime of the process. A session may be injected (tests, shared
connection pools) or is created lazily on first use.
"""
from typing import Optional

import aiohttp

USER_AGENT = "log-relay/1.0"


class SessionHolder:
    """Base class owning (or borrowing) an aiohttp client session."""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None):
        self.session = session
        self._owns_session = session is None
        self._default_headers = {"User-Agent": USER_AGENT}

    async def __aenter__(self):
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def connect(self) -> aiohttp.ClientSession:
        """Initialize the HTTP session."""
        if self.session is None:
            self.session = aiohttp.ClientSession(headers=self._default_headers)
            self._owns_session = True
        return self.session

    async def close(self) -> None:
        """Close the HTTP session if this object created it."""
        if self.session is not None and self._owns_session:
            await self.session.close()
            self.session = None
