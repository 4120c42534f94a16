#!/usr/bin/env python3
"""
Command line client for the proxy app, built on the proxykit SDK.

Usage:
    python scripts/proxykit_cli.py info                      # Status and metadata
    python scripts/proxykit_cli.py circuits --host torproject.org
    python scripts/proxykit_cli.py close 12                  # Close circuit 12
    python scripts/proxykit_cli.py watch                     # Print status changes
    python scripts/proxykit_cli.py url add-auth --url http://example.onion --key abc
    python scripts/proxykit_cli.py open request-token        # Ask the user for a token

The access token is read from --token or PROXYKIT_API_TOKEN (also via .env).
"""
from __future__ import annotations

import argparse
import asyncio
import os
import sys

from dotenv import load_dotenv

# Add parent dir to path to import proxykit from a source checkout
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from proxykit.config import get_config
from proxykit.errors import HttpStatusError, ProxyKitError
from proxykit.kit import ProxyKit
from proxykit.logging import configure_logging
from proxykit.models import StatusInfo
from proxykit.services.commands import UiCommand, UiUrlType


class PrintingListener:
    """Prints what the status notifier reports and ends the watch on stop."""

    def __init__(self, done: asyncio.Event):
        self.done = done

    def status_changed(self, info: StatusInfo) -> None:
        print(f"Status changed: {info}")

    def listening_stopped(self, error: ProxyKitError) -> None:
        print(f"Stopped listening: {error}")
        self.done.set()


def build_command(args: argparse.Namespace) -> UiCommand:
    name = args.ui_command
    if name == "show":
        return UiCommand.show()
    if name == "start":
        return UiCommand.start(callback=args.callback)
    if name == "stop":
        return UiCommand.stop(token=args.token or "", callback=args.callback)
    if name == "settings":
        return UiCommand.settings()
    if name == "bridges":
        return UiCommand.bridges()
    if name == "auth":
        return UiCommand.auth()
    if name == "add-auth":
        return UiCommand.add_auth(url=args.url or "", key=args.key or "")
    return UiCommand.request_api_token(need_bypass=args.need_bypass, callback=args.callback)


async def run(args: argparse.Namespace) -> int:
    async with ProxyKit(get_config()) as kit:
        if args.token:
            kit.api_token = args.token
        if args.universal:
            kit.url_type = UiUrlType.universal_link(no_web=False)

        if args.action == "info":
            info = await kit.info()
            print(info)
            print(f"Needs bypass proxy configured: {info.needs_proxy_configured_to_bypass}")

        elif args.action == "circuits":
            circuits = await kit.circuits(host=args.host)
            if not circuits:
                print("No circuits")
            for circuit in circuits:
                path = " -> ".join(node.nick_name or node.fingerprint or "?" for node in circuit.nodes)
                print(f"{circuit.circuit_id}: {circuit.status} {circuit.purpose or ''} {path}".rstrip())

        elif args.action == "close":
            result = await kit.close_circuit(args.circuit_id)
            if not result.success:
                print(f"Could not close circuit {args.circuit_id}: {result.error}")
                return 1
            print(f"Closed circuit {args.circuit_id}")

        elif args.action == "watch":
            done = asyncio.Event()
            kit.notify_on_status_changes(PrintingListener(done))
            print(f"Watching proxy status on {kit.config.api_base_url} (Ctrl-C to end)")
            await done.wait()

        elif args.action == "url":
            url = build_command(args).url_for(kit.url_type, kit.config)
            if url is None:
                print("Cannot build a URL for this command (is PROXYKIT_APP_ID set?)")
                return 1
            print(url)

        elif args.action == "open":
            if not kit.open(build_command(args)):
                print("Could not open the proxy app")
                return 1

    return 0


def main():
    parser = argparse.ArgumentParser(description="Control and query the proxy app")
    parser.add_argument("--token", help="API access token (or set PROXYKIT_API_TOKEN env)")
    parser.add_argument("--universal", action="store_true", help="Use universal links (falling back to the website) instead of the custom scheme")
    parser.add_argument("--log-level", default=None, help="Log level (default: PROXYKIT_LOG_LEVEL)")
    sub = parser.add_subparsers(dest="action", required=True)

    sub.add_parser("info", help="Show proxy status and metadata")

    circuits = sub.add_parser("circuits", help="List circuits")
    circuits.add_argument("--host", help="Only circuits likely used for this host")

    close = sub.add_parser("close", help="Close a circuit")
    close.add_argument("circuit_id")

    sub.add_parser("watch", help="Print status changes until polling stops")

    for action in ("url", "open"):
        ui = sub.add_parser(action, help=f"{action.capitalize()} a UI command")
        ui.add_argument("ui_command", choices=[
            "show", "start", "stop", "settings", "bridges", "auth", "add-auth", "request-token",
        ])
        ui.add_argument("--callback", help="Callback URL the proxy app should open afterwards")
        ui.add_argument("--url", help="Onion service URL (add-auth)")
        ui.add_argument("--key", help="Onion service key (add-auth)")
        ui.add_argument("--need-bypass", action="store_true", help="Request bypass access (request-token)")

    args = parser.parse_args()

    load_dotenv()
    configure_logging(args.log_level or get_config().log_level)

    try:
        sys.exit(asyncio.run(run(args)))
    except HttpStatusError as e:
        print(f"Error: {e}")
        if e.unauthorized:
            print("   The access token is missing or invalid. Request one with: open request-token")
        sys.exit(1)
    except ProxyKitError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
