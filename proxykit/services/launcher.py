"""
Opening deep links - the capability the host environment provides.
"""
from __future__ import annotations

import shutil
import subprocess
import webbrowser
from typing import Protocol

import httpx

from proxykit.logging import get_logger

logger = get_logger(__name__)


class UrlHandler(Protocol):
    def can_open(self, url: str) -> bool:
        ...

    def open(self, url: str, universal_links_only: bool = False) -> bool:
        ...


class WebBrowserUrlHandler:
    """
    Default handler backed by the `webbrowser` module.

    Scheme probing asks the desktop's MIME database for a handler of
    `x-scheme-handler/<scheme>`. That is best-effort only: any application
    may register the scheme, and without xdg-mime the answer is False.
    """

    def can_open(self, url: str) -> bool:
        scheme = httpx.URL(url).scheme
        if scheme in ("http", "https"):
            return True

        xdg_mime = shutil.which("xdg-mime")
        if xdg_mime is None:
            return False

        try:
            result = subprocess.run(
                [xdg_mime, "query", "default", f"x-scheme-handler/{scheme}"],
                capture_output=True, text=True, timeout=5, check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug(f"Scheme probe for {scheme!r} failed: {e}")
            return False

        return result.returncode == 0 and bool(result.stdout.strip())

    def open(self, url: str, universal_links_only: bool = False) -> bool:
        # Browsers have no app-claimed links, so a universal-link-only request
        # would always end up on the website.
        if universal_links_only:
            logger.debug(f"Not opening {url}: universal link handling is unavailable")
            return False
        return webbrowser.open(url)
