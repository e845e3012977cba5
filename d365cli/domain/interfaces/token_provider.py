"""Interface for bearer token acquisition."""

import abc

from d365cli.domain.models.common import BearerToken


class TokenProvider(abc.ABC):
    """Abstract Base Class for anything that can hand out a bearer token."""

    @abc.abstractmethod
    async def get_bearer_token(self) -> BearerToken:
        """Returns a valid access token, acquiring or refreshing it as needed.

        Raises:
            TokenAcquisitionError: If no token could be obtained.
        """
        pass
