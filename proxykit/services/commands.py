"""
UI commands - deep links which switch the proxy app to a specific screen.

These are fire-and-forget: the proxy app can be handed data this way, but
nothing comes back except (optionally) a callback URL opened by the proxy app.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple
from urllib.parse import quote, urlencode

import httpx

from proxykit.config import ProxyKitConfig


@dataclass(frozen=True)
class UiUrlType:
    """
    Which kind of URL to build for UI commands.

    The custom scheme always works but any app can register it. Universal
    links can only be claimed by the proxy app's domain; with `no_web` set the
    user won't be sent to the website if the proxy app is not installed.
    """
    universal: bool
    no_web: bool = False

    @classmethod
    def scheme(cls) -> "UiUrlType":
        return cls(universal=False)

    @classmethod
    def universal_link(cls, no_web: bool = True) -> "UiUrlType":
        return cls(universal=True, no_web=no_web)


@dataclass(frozen=True)
class UiCommand:
    """A UI command understood by the proxy app. Use the constructors below."""
    path: str
    params: Tuple[Tuple[str, str], ...] = ()
    callback: Optional[str] = None
    # Set for token requests only: the value of the need-bypass flag
    need_bypass: Optional[bool] = None

    @classmethod
    def show(cls) -> "UiCommand":
        """Show the main scene."""
        return cls("show")

    @classmethod
    def start(cls, callback: Optional[str] = None) -> "UiCommand":
        """
        Start the network extension, if not yet started.

        Don't assume the proxy is available right after this; use
        ProxyKit.info() or a status change listener to find out.
        """
        return cls("start", callback=callback)

    @classmethod
    def stop(cls, token: str, callback: Optional[str] = None) -> "UiCommand":
        """
        Stop the network extension. The only UI command which needs a token:
        without a valid one the user is shown a warning and not sent back.
        """
        return cls("stop", params=(("token", token),), callback=callback)

    @classmethod
    def settings(cls) -> "UiCommand":
        return cls("show/settings")

    @classmethod
    def bridges(cls) -> "UiCommand":
        return cls("show/bridges")

    @classmethod
    def auth(cls) -> "UiCommand":
        return cls("show/auth")

    @classmethod
    def add_auth(cls, url: str, key: str) -> "UiCommand":
        """Prefill the "add onion service auth" dialog. Both values are passed verbatim."""
        return cls("add/auth", params=(("url", url), ("key", key)))

    @classmethod
    def request_api_token(cls, need_bypass: bool = False, callback: Optional[str] = None) -> "UiCommand":
        """
        Ask the user to grant this app an API token.

        If a callback is given, the proxy app opens it with the token in a
        `token` query parameter.
        """
        return cls("request/token", callback=callback, need_bypass=need_bypass)

    def url_for(self, url_type: UiUrlType, config: ProxyKitConfig) -> Optional[str]:
        """
        Build the deep link for this command.

        Returns None when the command can't be expressed as a URL, e.g. a
        token request without a configured application id, or a callback
        which is not an absolute URL.
        """
        items: List[Tuple[str, str]] = list(self.params)

        if self.need_bypass is not None:
            if not config.app_id:
                return None

            items.append(("app-id", config.app_id))
            items.append(("need-bypass", "true" if self.need_bypass else "false"))

            if config.app_name:
                items.append(("app-name", config.app_name))

        if self.callback is not None:
            if not _is_absolute(self.callback):
                return None
            items.append(("callback", self.callback))

        if url_type.universal:
            url = f"https://{config.universal_link_host}{config.universal_link_path}{self.path}"
        else:
            url = f"{config.ui_scheme}:{self.path}"

        if items:
            url += "?" + urlencode(items, quote_via=quote, safe=":/")

        return url


def _is_absolute(url: str) -> bool:
    try:
        return bool(httpx.URL(url).scheme)
    except httpx.InvalidURL:
        return False
