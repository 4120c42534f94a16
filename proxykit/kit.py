"""
ProxyKit - the object a host application talks to.

It offers two kinds of calls:

- UI commands open the proxy app at a specific screen. Data can be handed
  over, but nothing comes back.
- REST API calls talk to the small web server the proxy's network extension
  runs on localhost. They only work while the extension is started.

Construct one ProxyKit, keep it for the lifetime of the application and pass
it to whoever needs it. Close it with `await kit.aclose()` (or use it as an
async context manager).
"""
from __future__ import annotations

from typing import List, Optional, Union

import httpx

from proxykit.config import ProxyKitConfig, get_config
from proxykit.logging import get_logger
from proxykit.models import Circuit, StatusInfo
from proxykit.services import api
from proxykit.services.api import CloseResult
from proxykit.services.commands import UiCommand, UiUrlType
from proxykit.services.launcher import UrlHandler, WebBrowserUrlHandler
from proxykit.services.notifier import (
    DeathListener,
    DeathNotifier,
    ListenerHandle,
    StatusChangeListener,
    StatusChangeNotifier,
)
from proxykit.services.transport import Transport
from proxykit.state import KitState

logger = get_logger(__name__)


class ProxyKit:
    """SDK entry point. See the module docstring."""

    def __init__(
        self,
        config: Optional[ProxyKitConfig] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        url_handler: Optional[UrlHandler] = None,
    ):
        self.config = config or get_config()

        if url_handler is None:
            # A browser can't restrict itself to universal links, so hand it the custom scheme
            self.url_type = UiUrlType.scheme()
            self.url_handler: UrlHandler = WebBrowserUrlHandler()
        else:
            # Keep this a universal link to be sure only the proxy app gets the command
            self.url_type = UiUrlType.universal_link(no_web=True)
            self.url_handler = url_handler

        self._owns_client = http_client is None
        if http_client is None:
            http_client = httpx.AsyncClient(
                timeout=self.config.request_timeout,
                headers={"Cache-Control": "no-cache"},
            )

        self.state = KitState(api_token=self.config.api_token, http_client=http_client)
        self.transport = Transport(self.state, self.config)
        self.status_notifier = StatusChangeNotifier(self.transport, self.config)
        self.death_notifier = DeathNotifier(self.transport, self.config)

    async def __aenter__(self) -> "ProxyKit":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    @property
    def api_token(self) -> Optional[str]:
        """
        Access token for the REST API, acquired with UiCommand.request_api_token().

        Reset to None automatically when the API answers 403. Persisting it
        is up to the host: store it when received and set it again on start.
        """
        return self.state.api_token

    @api_token.setter
    def api_token(self, value: Optional[str]) -> None:
        self.state.api_token = value

    @property
    def installed(self) -> bool:
        """
        Whether the proxy app seems to be installed.

        Always probes the custom scheme, since https URLs can always be
        opened. Any app can register that scheme, so treat this as a hint.
        """
        return self.url_handler.can_open(f"{self.config.ui_scheme}:show")

    def open(self, command: UiCommand) -> bool:
        """Open the proxy app with the given UI command. Returns whether that worked."""
        url = command.url_for(self.url_type, self.config)
        if url is None:
            logger.warning(f"Cannot build a URL for {command.path}")
            return False

        logger.debug(f"Opening {url}")
        return self.url_handler.open(url, universal_links_only=self.url_type.universal and self.url_type.no_web)

    async def info(self) -> StatusInfo:
        """Proxy status and metadata; `stopped` if the proxy isn't reachable."""
        return await api.get_info(self.transport)

    async def circuits(self, host: Optional[str] = None) -> List[Circuit]:
        """Currently built circuits, optionally narrowed down to those likely used for `host`."""
        return await api.get_circuits(self.transport, host)

    async def close_circuit(self, target: Union[str, Circuit]) -> CloseResult:
        """Close a circuit by id or by value."""
        return await api.close_circuit(self.transport, target)

    def notify_on_status_changes(self, listener: StatusChangeListener) -> ListenerHandle:
        """
        Inform `listener` whenever the proxy status changes, until it's removed
        or the polling fails. Call as often as you like; all listeners share
        one polling loop.

        The first registration must happen on the event loop; after that any
        thread may call this. Listeners are always called on that loop.
        """
        return self.status_notifier.register(listener)

    def remove_status_change_listener(self, handle: Optional[ListenerHandle] = None) -> None:
        """Remove one status change listener, or all of them without a handle. Thread-safe."""
        self.status_notifier.unregister(handle)

    def notify_on_death(self, listener: DeathListener) -> ListenerHandle:
        """Inform `listener` once when the proxy stops answering. Same threading rules as notify_on_status_changes()."""
        return self.death_notifier.register(listener)

    def remove_death_listener(self, handle: Optional[ListenerHandle] = None) -> None:
        self.death_notifier.unregister(handle)

    async def aclose(self) -> None:
        """Stop all polling and close the HTTP client, if this kit created it."""
        await self.status_notifier.aclose()
        await self.death_notifier.aclose()

        if self._owns_client and self.state.http_client is not None:
            await self.state.http_client.aclose()
            logger.debug("HTTP client closed")
