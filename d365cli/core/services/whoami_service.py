"""WhoAmI use case: the smallest call that proves auth and connectivity work."""

import logging

from d365cli.core.services.request_service import report_outcome
from d365cli.domain.interfaces.user_interface import UserInterface
from d365cli.domain.models.common import EndpointPath
from d365cli.domain.models.outcome import Outcome
from d365cli.domain.models.request import ApiRequest, HttpMethod
from d365cli.infrastructure.resilience.dispatcher import RequestDispatcher

logger = logging.getLogger(__name__)

WHOAMI_REQUEST = ApiRequest(HttpMethod.GET, EndpointPath("WhoAmI"))


class WhoAmIService:

    def __init__(self, dispatcher: RequestDispatcher, ui: UserInterface):
        self.dispatcher = dispatcher
        self.ui = ui

    async def who_am_i(self) -> Outcome:
        """Calls WhoAmI and shows the caller's user, business unit and organization ids."""
        outcome = await self.dispatcher.dispatch(WHOAMI_REQUEST)
        # A 403 with 'Authorization_RequestDenied' usually means the tenant admin
        # has not granted consent for the application to call the Web API.
        report_outcome(self.ui, outcome, title="WhoAmI")
        return outcome
