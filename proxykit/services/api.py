"""
One-shot API operations - info, circuit listing and circuit closing.
"""
from __future__ import annotations

from typing import List, NamedTuple, Optional, Union

from proxykit.errors import CouldNotConnect, ProxyKitError
from proxykit.logging import get_logger
from proxykit.models import Circuit, Status, StatusInfo
from proxykit.services.endpoints import RestEndpoint
from proxykit.services.transport import Transport

logger = get_logger(__name__)


class CloseResult(NamedTuple):
    """Outcome of closing a circuit. `error` explains a failure, if known."""
    success: bool
    error: Optional[ProxyKitError] = None


async def get_info(transport: Transport) -> StatusInfo:
    """
    Get the proxy status and metadata.

    An unreachable proxy is simply stopped, so a refused connection yields a
    synthesized `stopped` status instead of an error.

    Raises:
        HttpStatusError: 403 means the access token is missing or invalid
        ProxyKitError: Any other transport failure
    """
    try:
        info = await transport.send(RestEndpoint.get_info(), StatusInfo)
    except CouldNotConnect:
        logger.debug("Proxy not reachable, reporting it as stopped")
        return StatusInfo.synthesize(Status.STOPPED)

    return info if info is not None else StatusInfo.synthesize(Status.STOPPED)


async def get_circuits(transport: Transport, host: Optional[str] = None) -> List[Circuit]:
    """
    Get the currently built circuits.

    With `host`, only the circuits most likely used for a request to that
    host are returned, newest first. Onion service circuits can be identified
    exactly; for everything else the answer gets less accurate the longer
    after the request it is asked.
    """
    circuits = await transport.send(RestEndpoint.get_circuits(host), List[Circuit])
    return circuits if circuits is not None else []


async def close_circuit(transport: Transport, target: Union[str, Circuit]) -> CloseResult:
    """
    Ask the proxy to close a circuit, given its id or the circuit itself.

    A circuit without an id is never sent; that yields an unsuccessful result
    without an error. An unknown id comes back as HTTP 404.
    """
    if isinstance(target, Circuit):
        if not target.circuit_id:
            return CloseResult(False)
        circuit_id = target.circuit_id
    else:
        circuit_id = target

    try:
        await transport.send(RestEndpoint.close_circuit(circuit_id))
    except ProxyKitError as e:
        logger.info(f"Closing circuit {circuit_id} failed: {e}")
        return CloseResult(False, e)

    logger.info(f"Closed circuit {circuit_id}")
    return CloseResult(True)
