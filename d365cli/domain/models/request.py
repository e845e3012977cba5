"""Outgoing request model handed to the dispatcher."""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .common import EndpointPath


class HttpMethod(str, Enum):
    """HTTP verbs the dispatcher knows how to route."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"

    @classmethod
    def parse(cls, value: str) -> "HttpMethod":
        """Parses a case-insensitive method name.

        Raises:
            ValueError: If the name is not a supported HTTP method.
        """
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(f"Unsupported HTTP method: '{value}'") from None


@dataclass(frozen=True)
class ApiRequest:
    """A single logical request. Read-only once built."""

    method: HttpMethod
    target: EndpointPath
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[Any] = None  # JSON-serializable payload, or bytes sent as-is

    def __post_init__(self):
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    def describe(self) -> str:
        return f"{self.method.value} {self.target}"
