"""
Kit state - the shared mutable cells of one ProxyKit instance.
"""
from __future__ import annotations

import threading
from typing import Optional

import httpx

from proxykit.logging import get_logger

logger = get_logger(__name__)


class KitState:
    """
    State container owned by a ProxyKit.

    The access token is the one cell written from more than one place: the
    host sets it, and the transport clears it on HTTP 403. Both go through
    the lock so a host thread can update it while requests are in flight.
    """

    def __init__(self, api_token: Optional[str] = None, http_client: Optional[httpx.AsyncClient] = None):
        self._lock = threading.Lock()
        self._api_token = api_token
        self.http_client = http_client

    @property
    def api_token(self) -> Optional[str]:
        with self._lock:
            return self._api_token

    @api_token.setter
    def api_token(self, value: Optional[str]) -> None:
        with self._lock:
            self._api_token = value

    def invalidate_token(self) -> bool:
        """Clear the token. Returns True if there was one to clear."""
        with self._lock:
            had_token = self._api_token is not None
            self._api_token = None
        if had_token:
            logger.warning("Access token rejected with HTTP 403, token cleared")
        return had_token
