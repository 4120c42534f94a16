"""
Transport - sends one request to the loopback API and classifies the outcome.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from proxykit.config import ProxyKitConfig
from proxykit.errors import ConnectionFailure, CouldNotConnect, DecodeError, HttpStatusError, InternalError
from proxykit.logging import get_logger
from proxykit.services.endpoints import RestEndpoint
from proxykit.state import KitState

logger = get_logger(__name__)


@lru_cache(maxsize=None)
def _adapter(shape: Any) -> TypeAdapter:
    return TypeAdapter(shape)


class Transport:
    """Issues requests with the kit's shared HTTP client."""

    def __init__(self, state: KitState, config: ProxyKitConfig):
        self._state = state
        self._config = config

    async def send(self, endpoint: RestEndpoint, shape: Optional[Any] = None) -> Any:
        """
        Send a request and decode the answer.

        Args:
            endpoint: The endpoint to query
            shape: Type to validate the JSON body against (e.g. StatusInfo or
                List[Circuit]). None skips decoding.

        Returns:
            The decoded payload, or None if the body is empty or no shape was asked for

        Raises:
            InternalError: If no request can be built or no HTTP client is set
            CouldNotConnect: If nothing listens on the loopback port
            ConnectionFailure: On any other network-level failure
            HttpStatusError: On a status outside 2xx (403 also clears the access token)
            DecodeError: If the body doesn't match `shape`
        """
        client = self._state.http_client
        if client is None:
            raise InternalError("HTTP client not initialized")

        request = endpoint.build_request(self._config.api_base_url, self._state.api_token)
        if request is None:
            raise InternalError(f"Cannot build request for {endpoint.method} {endpoint.path}")

        try:
            response = await client.send(request)
        except httpx.ConnectError as e:
            raise CouldNotConnect(f"Could not connect to {request.url}") from e
        except httpx.RequestError as e:
            raise ConnectionFailure(f"Request to {request.url} failed: {e!r}") from e

        status_code = response.status_code
        if status_code < 200 or status_code >= 300:
            if status_code == 403:
                self._state.invalidate_token()
            logger.debug(f"{endpoint.method} {endpoint.path} answered {status_code}")
            raise HttpStatusError(status_code)

        if shape is None or not response.content:
            return None

        try:
            return _adapter(shape).validate_json(response.content)
        except ValidationError as e:
            logger.warning(f"Invalid payload from {endpoint.method} {endpoint.path}: {e}")
            raise DecodeError(str(e)) from e
