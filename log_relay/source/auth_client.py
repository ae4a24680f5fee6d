"""
Event Source - Credential Exchange

Performs the client-credential grant against the event source's token
endpoint. Results are cached by ``CredentialCache``; this client only
talks to the wire.
"""
import asyncio
from typing import Optional

import aiohttp
import structlog

from ..shared.config import SourceSettings
from ..shared.exceptions import AuthError
from ..shared.http import SessionHolder

logger = structlog.get_logger(__name__)


class SourceTokenClient(SessionHolder):
    """Exchanges client credentials for a bearer token."""

    def __init__(self, settings: SourceSettings, session: Optional[aiohttp.ClientSession] = None):
        super().__init__(session)
        self.settings = settings
        self.timeout = aiohttp.ClientTimeout(total=settings.timeout_seconds)
        self.logger = logger.bind(component="source_token_client")

    def token_url(self, endpoint: str) -> str:
        return f"https://{endpoint}/oauth/token"

    async def fetch_token(self, endpoint: str) -> str:
        """
        Obtain a fresh access token for the endpoint.

        Args:
            endpoint: Source domain the token is issued for

        Returns:
            The bearer token

        Raises:
            AuthError: On transport failure, rejection or malformed response
        """
        session = await self.connect()
        body = {
            "grant_type": "client_credentials",
            "client_id": self.settings.client_id,
            "client_secret": self.settings.client_secret,
            "audience": self.settings.get_audience(),
        }

        try:
            async with session.post(self.token_url(endpoint), json=body, timeout=self.timeout) as response:
                if response.status >= 400:
                    error_text = await response.text(errors="replace")
                    raise AuthError(
                        f"Token endpoint returned {response.status}: {error_text[:200]}",
                        status_code=response.status,
                    )
                data = await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise AuthError(f"Token request timed out after {self.settings.timeout_seconds}s") from e
        except aiohttp.ClientError as e:
            raise AuthError(f"Token request failed: {e}") from e
        except ValueError as e:
            raise AuthError("Token endpoint returned invalid JSON") from e

        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise AuthError("Token endpoint response has no access_token")

        self.logger.debug("Access token issued", endpoint=endpoint)
        return token
