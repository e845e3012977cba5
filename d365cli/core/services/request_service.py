"""Generic Web API calls routed through the dispatcher."""

import asyncio
import json
import logging
from typing import Any, Optional

from d365cli.domain.interfaces.user_interface import UserInterface
from d365cli.domain.models.common import EndpointPath
from d365cli.domain.models.outcome import Outcome
from d365cli.domain.models.request import ApiRequest, HttpMethod
from d365cli.infrastructure.resilience.dispatcher import RequestDispatcher

logger = logging.getLogger(__name__)


def decode_json(response: Any) -> Optional[Any]:
    """Returns the JSON body of a response, or None for empty/non-JSON bodies."""
    if not getattr(response, "content", b""):
        return None
    try:
        return response.json()
    except ValueError:
        return None


def report_outcome(ui: UserInterface, outcome: Outcome, title: str = "Result") -> None:
    """Renders a final outcome on the UI."""
    if outcome.is_success:
        payload = decode_json(outcome.response)
        if isinstance(payload, dict):
            ui.display_result(payload, title=title)
        else:
            ui.display_success(f"{outcome.describe()}")
        return

    ui.display_error(f"Failed to call the Web Api: {outcome.describe()}")
    response = getattr(outcome, "response", None)
    if response is None and hasattr(outcome, "last_failure"):
        response = outcome.last_failure.response
    if response is not None and response.text:
        ui.display_info(f"Content: {response.text}")


class RequestService:
    """Builds ApiRequests from CLI input and runs them through the dispatcher."""

    def __init__(self, dispatcher: RequestDispatcher, ui: UserInterface):
        self.dispatcher = dispatcher
        self.ui = ui

    @staticmethod
    def build_request(method: str, path: str, data: Optional[str] = None) -> ApiRequest:
        """Parses CLI input into an ApiRequest.

        Raises:
            ValueError: On an unknown method or a body that is not valid JSON.
        """
        body = None
        if data is not None:
            try:
                body = json.loads(data)
            except json.JSONDecodeError as e:
                raise ValueError(f"Request body is not valid JSON: {e}") from e
        headers = {"Content-Type": "application/json"} if body is not None else {}
        return ApiRequest(HttpMethod.parse(method), EndpointPath(path.lstrip("/")), headers, body)

    async def send(
        self,
        method: str,
        path: str,
        data: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Outcome:
        request = self.build_request(method, path, data)
        logger.info(f"Sending {request.describe()}")
        outcome = await self.dispatcher.dispatch(request, cancel_event)
        report_outcome(self.ui, outcome, title=request.describe())
        return outcome
