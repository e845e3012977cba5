"""httpx implementation of the RequestSender interface."""

import logging
from typing import Dict, Optional

import httpx

from d365cli.domain.interfaces.request_sender import RequestSender
from d365cli.domain.interfaces.token_provider import TokenProvider
from d365cli.domain.models.request import ApiRequest

logger = logging.getLogger(__name__)

ODATA_HEADERS: Dict[str, str] = {
    "Accept": "application/json",
    "OData-MaxVersion": "4.0",
    "OData-Version": "4.0",
}
DEFAULT_TIMEOUT_SECONDS = 30.0


def create_http_client(
    base_url: str,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Builds the AsyncClient used for every Web API call.

    Each attempt carries the client's own timeout; the retry executor only
    reacts to the resulting transport error.
    """
    return httpx.AsyncClient(
        base_url=base_url,
        headers=ODATA_HEADERS,
        timeout=httpx.Timeout(timeout),
        transport=transport,
    )


class HttpxRequestSender(RequestSender):
    """Sends ApiRequests through an httpx.AsyncClient with a bearer token."""

    def __init__(self, client: httpx.AsyncClient, token_provider: TokenProvider):
        self.client = client
        self.token_provider = token_provider

    async def send(self, request: ApiRequest) -> httpx.Response:
        token = await self.token_provider.get_bearer_token()
        headers = dict(request.headers)
        headers["Authorization"] = f"Bearer {token}"

        kwargs = {}
        if isinstance(request.body, bytes):
            kwargs["content"] = request.body
        elif request.body is not None:
            kwargs["json"] = request.body

        logger.debug(f"Sending {request.describe()}")
        response = await self.client.request(request.method.value, request.target, headers=headers, **kwargs)
        logger.debug(f"{request.describe()} answered HTTP {response.status_code}")
        return response

    async def aclose(self) -> None:
        await self.client.aclose()
