#!/usr/bin/env python3
"""
Mock of the proxy app's loopback REST API, for trying out the SDK.

Endpoints:
- GET    /info            - current status
- GET    /circuits        - circuit list (optional ?host= filter)
- DELETE /circuits/{id}   - close a circuit
- GET    /poll/?length=N  - long poll: waits N seconds, then answers the status
- PUT    /_mock/status    - change the simulated status ({"status": "stopped"})

Run with: python scripts/mock_proxy.py --token secret
Listens on: http://localhost:15182
"""
from __future__ import annotations

import argparse
import asyncio
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel
import uvicorn

SAMPLE_CIRCUITS = [
    {
        "circuitId": "12",
        "status": "BUILT",
        "purpose": "GENERAL",
        "buildFlags": ["NEED_CAPACITY"],
        "timeCreated": 1651500000000,
        "nodes": [
            {"fingerprint": "A1B2C3", "nickName": "guard1", "ipv4Address": "192.0.2.10",
             "countryCode": "de", "localizedCountryName": "Germany"},
            {"fingerprint": "D4E5F6", "nickName": "exit1", "ipv4Address": "198.51.100.7",
             "countryCode": "nl", "localizedCountryName": "Netherlands"},
        ],
    },
    {
        "circuitId": "15",
        "status": "BUILT",
        "purpose": "HS_CLIENT_REND",
        "rendQuery": "2gzyxa5ihm7nsggfxnu52rck2vv4rvmdlkiu3zzui5du4xyclen53wid",
        "timeCreated": 1651500100000,
        "nodes": [],
    },
]


class StatusUpdate(BaseModel):
    status: str


def create_app(token: Optional[str] = None, status: str = "started", max_poll: float = 30.0) -> FastAPI:
    """Build a mock server. With a token set, requests without a matching X-Token get 403."""
    app = FastAPI(title="Mock Proxy App", description="Loopback API stand-in for the proxy SDK")
    app.state.token = token
    app.state.status = status
    app.state.circuits = [dict(c) for c in SAMPLE_CIRCUITS]

    def check_token(request: Request) -> None:
        if app.state.token is not None and request.headers.get("x-token") != app.state.token:
            raise HTTPException(status_code=403, detail="Invalid access token")

    def status_body() -> dict:
        return {
            "status": app.state.status,
            "name": "Tor VPN",
            "version": "1.7.0",
            "build": "182",
            "onion-only": False,
        }

    @app.get("/info")
    async def info(request: Request):
        check_token(request)
        return JSONResponse(status_body())

    @app.get("/circuits")
    async def circuits(request: Request, host: Optional[str] = None):
        check_token(request)
        result = app.state.circuits
        if host and host.endswith(".onion"):
            query = host[: -len(".onion")].split(".")[-1]
            result = [c for c in result if c.get("rendQuery") == query]
        return JSONResponse(result)

    @app.delete("/circuits/{circuit_id}")
    async def close_circuit(circuit_id: str, request: Request):
        check_token(request)
        remaining = [c for c in app.state.circuits if c["circuitId"] != circuit_id]
        if len(remaining) == len(app.state.circuits):
            raise HTTPException(status_code=404, detail="No such circuit")
        app.state.circuits = remaining
        return Response(status_code=200)

    @app.get("/poll/")
    async def poll(request: Request, length: int = Query(default=20, ge=0)):
        check_token(request)
        await asyncio.sleep(min(length, max_poll))
        return JSONResponse(status_body())

    @app.put("/_mock/status")
    async def set_status(update: StatusUpdate):
        app.state.status = update.status
        timestamp = datetime.now(timezone.utc).strftime("%H:%M:%S")
        print(f"[{timestamp}] status -> {update.status}")
        return {"status": app.state.status}

    return app


def main():
    parser = argparse.ArgumentParser(description="Mock proxy app loopback API")
    parser.add_argument("--token", help="Require this X-Token on every request")
    parser.add_argument("--status", default="started", choices=["stopped", "starting", "started"])
    parser.add_argument("--port", type=int, default=15182)
    args = parser.parse_args()

    print("\nMock Proxy App")
    print("=" * 50)
    print(f"Listening on http://localhost:{args.port}")
    print(f"Token required: {'yes' if args.token else 'no'}")
    print("=" * 50 + "\n")

    uvicorn.run(create_app(args.token, args.status), host="127.0.0.1", port=args.port, log_level="warning")


if __name__ == "__main__":
    main()
