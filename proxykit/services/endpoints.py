"""
REST endpoints of the proxy app's loopback API.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import quote

import httpx

TOKEN_HEADER = "X-Token"


@dataclass(frozen=True)
class RestEndpoint:
    """A request descriptor. Use the constructors below."""
    method: str
    path: str
    params: Tuple[Tuple[str, str], ...] = ()
    # Per-request timeout in seconds, overriding the HTTP client's default
    timeout: Optional[float] = None

    @classmethod
    def get_info(cls) -> "RestEndpoint":
        return cls("GET", "/info")

    @classmethod
    def get_circuits(cls, host: Optional[str] = None) -> "RestEndpoint":
        params = (("host", host),) if host is not None else ()
        return cls("GET", "/circuits", params)

    @classmethod
    def close_circuit(cls, circuit_id: str) -> "RestEndpoint":
        return cls("DELETE", f"/circuits/{quote(circuit_id, safe='')}")

    @classmethod
    def poll(cls, length: int, timeout: Optional[float] = None) -> "RestEndpoint":
        """
        Long poll: the server waits `length` seconds before answering.

        `timeout` must outlast `length`, or the HTTP client gives up on a
        poll that is simply still waiting.
        """
        return cls("GET", "/poll/", (("length", str(length)),), timeout)

    def build_request(self, base_url: str, token: Optional[str] = None) -> Optional[httpx.Request]:
        """
        Build the HTTP request, with the access token attached when there is one.

        Returns None if no valid URL can be formed.
        """
        headers = {TOKEN_HEADER: token} if token else {}
        extensions = {"timeout": httpx.Timeout(self.timeout).as_dict()} if self.timeout is not None else None
        try:
            return httpx.Request(
                self.method,
                f"{base_url}{self.path}",
                params=list(self.params) or None,
                headers=headers,
                extensions=extensions,
            )
        except httpx.InvalidURL:
            return None
