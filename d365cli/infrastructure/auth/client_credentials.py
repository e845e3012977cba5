"""OAuth2 client-credentials token provider.

Daemon applications are confidential clients: they authenticate with their
own client id and secret and ask for '<resource>/.default', so the
application permissions granted by a tenant administrator apply.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

import httpx

from d365cli.domain.events.api_events import TokenAcquired
from d365cli.domain.exceptions import ScopeNotSupportedError, TokenAcquisitionError
from d365cli.domain.interfaces.token_provider import TokenProvider
from d365cli.domain.models.common import BearerToken
from d365cli.infrastructure.monitoring.events import dispatch_event

logger = logging.getLogger(__name__)

TOKEN_PATH = "/oauth2/v2.0/token"
INVALID_SCOPE_CODE = "AADSTS70011"
EXPIRY_MARGIN_SECONDS = 60.0


class ClientCredentialsTokenProvider(TokenProvider):
    """Acquires and caches an access token with the client-credentials grant."""

    def __init__(
        self,
        authority: str,
        client_id: str,
        client_secret: str,
        scope: str,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initializes the provider.

        Args:
            authority: e.g. https://login.microsoftonline.com/<tenant-id>
            client_id: Application (client) id.
            client_secret: Client secret registered for the application.
            scope: Must have the shape 'https://resource/.default'.
            http_client: Client used to reach the token endpoint.
            clock: Monotonic clock, injectable for tests.
        """
        if not scope.endswith("/.default"):
            raise ScopeNotSupportedError(f"Scope provided is not supported: '{scope}' (expected '<resource>/.default')")
        self.token_url = authority.rstrip("/") + TOKEN_PATH
        self.authority = authority
        self.client_id = client_id
        self._client_secret = client_secret
        self.scope = scope
        self._http_client = http_client
        self._clock = clock
        self._lock = asyncio.Lock()
        self._token: Optional[BearerToken] = None
        self._expires_at = 0.0

    async def get_bearer_token(self) -> BearerToken:
        async with self._lock:
            if self._token is not None and self._clock() < self._expires_at:
                return self._token
            return await self._acquire()

    def invalidate(self) -> None:
        """Drops the cached token so the next call fetches a new one."""
        self._token = None
        self._expires_at = 0.0

    async def _acquire(self) -> BearerToken:
        data = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self._client_secret,
            "scope": self.scope,
        }
        try:
            if self._http_client is not None:
                response = await self._http_client.post(self.token_url, data=data)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(self.token_url, data=data)
        except httpx.HTTPError as e:
            raise TokenAcquisitionError(f"Could not reach token endpoint {self.token_url}: {e}") from e

        payload = self._parse(response)
        if response.status_code != 200 or "access_token" not in payload:
            self._raise_for_error(response.status_code, payload)

        expires_in = float(payload.get("expires_in", 3600))
        self._token = BearerToken(payload["access_token"])
        self._expires_at = self._clock() + max(0.0, expires_in - EXPIRY_MARGIN_SECONDS)
        logger.info("Token acquired")
        dispatch_event(TokenAcquired(authority=self.authority, expires_in=expires_in))
        return self._token

    @staticmethod
    def _parse(response: httpx.Response) -> dict:
        try:
            payload = response.json()
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {}

    def _raise_for_error(self, status_code: int, payload: dict) -> None:
        error = payload.get("error", "unknown_error")
        description = payload.get("error_description", "")
        if error == "invalid_scope" or INVALID_SCOPE_CODE in description:
            logger.error(f"Scope rejected by token endpoint: {self.scope}")
            raise ScopeNotSupportedError(f"Scope provided is not supported: '{self.scope}'")
        raise TokenAcquisitionError(f"Token request failed (HTTP {status_code}): {error} {description}".strip())
