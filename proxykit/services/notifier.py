"""
Long-poll notification engine.

The loopback API has no push channel. GET /poll/ blocks for up to `length`
seconds and then answers with the current status, so a loop of such requests
approximates push notifications. One loop runs per notifier while it has
listeners:

    Idle --register--> Running --registry empty / terminal error--> Draining --> Idle

Listeners are called from the loop's own task, never from the frame that
registered them.
"""
from __future__ import annotations

import asyncio
import inspect
import itertools
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

from proxykit.config import ProxyKitConfig
from proxykit.errors import CouldNotConnect, InternalError, ProxyKitError, RequestCancelled
from proxykit.logging import get_logger
from proxykit.models import Status, StatusInfo
from proxykit.services.endpoints import RestEndpoint
from proxykit.services.transport import Transport

logger = get_logger(__name__)

# Returned by a poll whose client-side wait ran out first
NO_NEWS = object()


class StatusChangeListener(Protocol):
    def status_changed(self, info: StatusInfo) -> Any:
        """
        Called when the proxy status changes, either from stopped to starting
        (or started), or from starting/started to stopped.

        The proxy does not signal a change from starting to started, and a
        fast startup may skip starting entirely. Treat both alike; call
        ProxyKit.info() if the difference matters.
        """

    def listening_stopped(self, error: ProxyKitError) -> Any:
        """
        Called once when the loop ends. An HttpStatusError with status 403
        means the access token is invalid.
        """


class DeathListener(Protocol):
    def died(self, error: ProxyKitError) -> Any:
        """Called once when the proxy stops answering, with the failure that showed it."""


@dataclass(frozen=True)
class ListenerHandle:
    """Opaque registration handle, used to unregister a listener."""
    id: int


class PollingNotifier(ABC):
    """
    Shared long-poll loop. Subclasses decide the poll timeout, how a poll
    result maps to an observation, and what listeners are told.

    The registry and the loop belong to one event loop. register() and
    unregister() may be called from other threads too; they are then handed
    over to that loop.
    """

    # Name of the listener method called once when the loop ends
    stopped_callback = "listening_stopped"

    # Extra seconds the HTTP request may take beyond the client-side wait
    request_grace = 1.0

    _handle_ids = itertools.count(1)

    def __init__(self, transport: Transport, config: ProxyKitConfig):
        self._transport = transport
        self._config = config
        self._listeners: Dict[ListenerHandle, Any] = {}
        self._event_loop: Optional[asyncio.AbstractEventLoop] = None
        self._loop_task: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def register(self, listener: Any) -> ListenerHandle:
        """
        Add a listener and start the loop if it isn't running yet.

        The first call must happen while an asyncio event loop is running in
        the calling thread. Later calls from other threads are scheduled on
        that loop, so the listener is added shortly after this returns.

        Raises:
            RuntimeError: If called outside an event loop before any loop is known
        """
        handle = ListenerHandle(next(self._handle_ids))
        if not self._call_in_loop(self._add, handle, listener):
            raise RuntimeError(f"{type(self).__name__}.register() needs a running event loop")
        return handle

    def unregister(self, handle: Optional[ListenerHandle] = None) -> None:
        """
        Remove one listener, or all of them when no handle is given.

        With nobody left, the in-flight poll is cancelled. The loop notices at
        its next iteration and winds down; this call doesn't wait for that.
        """
        if not self._call_in_loop(self._remove, handle):
            # Never ran anywhere, so there is no task to cancel
            self._remove(handle)

    def _call_in_loop(self, callback: Callable[..., None], *args: Any) -> bool:
        """Run `callback` on the notifier's event loop. Returns False if there is none."""
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None

        if current is not None and (current is self._event_loop or not self.running):
            self._event_loop = current
            callback(*args)
            return True

        if self._event_loop is not None and not self._event_loop.is_closed():
            self._event_loop.call_soon_threadsafe(callback, *args)
            return True

        return False

    def _add(self, handle: ListenerHandle, listener: Any) -> None:
        self._listeners[handle] = listener
        if not self.running:
            self._loop_task = self._event_loop.create_task(self._run())

    def _remove(self, handle: Optional[ListenerHandle]) -> None:
        if handle is None:
            self._listeners.clear()
        else:
            self._listeners.pop(handle, None)

        if not self._listeners and self._poll_task is not None:
            self._poll_task.cancel()

    async def aclose(self) -> None:
        """Drop all listeners without notifying them and wait for the loop to end."""
        self._listeners.clear()
        task = self._loop_task
        if task is None:
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def _poll_timeout(self) -> float:
        return self._config.request_timeout

    @abstractmethod
    async def _iterate(self) -> Any:
        """One poll. Returns an observation or None; raises ProxyKitError to stop the loop."""

    async def _observe(self, observation: Any) -> None:
        pass

    def _reset(self) -> None:
        pass

    async def _poll(self, timeout: float, shape: Optional[Any] = None) -> Any:
        """
        Issue one long poll and race it against `timeout`.

        Returns the payload, or NO_NEWS if the wait ran out first.

        Raises:
            RequestCancelled: If the request was cancelled through unregister()
            ProxyKitError: Whatever the transport raised
        """
        endpoint = RestEndpoint.poll(length=max(int(timeout) - 1, 0), timeout=timeout + self.request_grace)
        task = asyncio.ensure_future(self._transport.send(endpoint, shape))
        self._poll_task = task

        try:
            done, _ = await asyncio.wait({task}, timeout=timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            self._poll_task = None

        if not done:
            task.cancel()
            logger.debug(f"No answer to poll within {timeout}s")
            return NO_NEWS

        if task.cancelled():
            raise RequestCancelled("Poll request cancelled")

        return task.result()

    async def _run(self) -> None:
        kind = type(self).__name__
        reason: Optional[ProxyKitError] = None
        self._reset()
        logger.info(f"{kind} polling started")

        try:
            while True:
                try:
                    observation = await self._iterate()
                except RequestCancelled:
                    logger.debug(f"{kind} poll cancelled")
                except ProxyKitError as e:
                    reason = e
                else:
                    if observation is not None:
                        await self._observe(observation)

                if reason is not None or not self._listeners:
                    break
        finally:
            listeners = list(self._listeners.values())
            self._listeners.clear()

            if self._poll_task is not None:
                self._poll_task.cancel()
                self._poll_task = None

            if self._loop_task is asyncio.current_task():
                self._loop_task = None

        reason = reason or InternalError()
        logger.info(f"{kind} polling stopped: {reason!r}")
        await self._deliver(listeners, self.stopped_callback, reason)

    async def _fan_out(self, method: str, *args: Any) -> None:
        await self._deliver(list(self._listeners.values()), method, *args)

    async def _deliver(self, listeners: list, method: str, *args: Any) -> None:
        for listener in listeners:
            try:
                result = getattr(listener, method)(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Listener {listener!r} failed in {method}")


class StatusChangeNotifier(PollingNotifier):
    """
    Reports status transitions to StatusChangeListener objects.

    The first status seen after the loop starts is only recorded, never
    reported. After that, each observed status that differs from the last
    reported one is fanned out in registration order.
    """

    def __init__(self, transport: Transport, config: ProxyKitConfig):
        super().__init__(transport, config)
        self._last: Optional[StatusInfo] = None

    @property
    def last_status(self) -> Optional[StatusInfo]:
        return self._last

    def _reset(self) -> None:
        self._last = None

    def _poll_timeout(self) -> float:
        # Poll briefly while the proxy isn't fully up, so a (re)start is noticed early
        if self._last is None or self._last.status != Status.STARTED:
            return self._config.dead_poll_timeout
        return self._config.request_timeout

    async def _iterate(self) -> Optional[StatusInfo]:
        try:
            info = await self._poll(self._poll_timeout(), StatusInfo)
        except CouldNotConnect:
            # Not running. Not an error, but don't hammer the port.
            await asyncio.sleep(self._config.connect_retry_delay)
            return StatusInfo.synthesize(Status.STOPPED)

        if info is NO_NEWS:
            return None

        # Older proxy versions answer with an empty body while running
        return info if info is not None else StatusInfo.synthesize(Status.STARTED)

    async def _observe(self, info: StatusInfo) -> None:
        if self._last is None:
            logger.debug(f"Baseline status: {info.status.value}")
            self._last = info
            return

        if info.status == self._last.status:
            return

        logger.info(f"Proxy status changed: {self._last.status.value} -> {info.status.value}")
        self._last = info
        await self._fan_out("status_changed", info)


class DeathNotifier(PollingNotifier):
    """
    Tells DeathListener objects when the proxy stops answering.

    Only register after ProxyKit.info() reported a status other than
    stopped; otherwise listeners are told right away.
    """

    stopped_callback = "died"

    async def _iterate(self) -> None:
        await self._poll(self._poll_timeout())
        return None
