from __future__ import annotations
import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from logstream.config import ClientConfig
from logstream.errors import ParseError
from logstream.log import get_logger
from logstream.records import decode_record, format_record

logger = get_logger(__name__)

OPEN_NOTICE = "Connection opened!"

RecordSink = Callable[[Any], None]
NoticeSink = Callable[[str], None]

# Everything below ends a connection attempt and is retried after the delay
_TRANSPORT_ERRORS = (OSError, asyncio.TimeoutError, TimeoutError, WebSocketException)


class ConnectionState(Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass(eq=False)
class ConnectionHandle:
    """One connection instance. CLOSED is terminal for the handle, not for the client."""
    generation: int
    url: str
    state: ConnectionState = ConnectionState.CONNECTING
    websocket: Optional[websockets.ClientConnection] = field(default=None, repr=False)
    opened_at: Optional[float] = None
    closed_at: Optional[float] = None
    messages: int = 0
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def log_context(self) -> Dict[str, Any]:
        return {"generation": self.generation, "url": self.url}

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN

    async def wait_closed(self) -> None:
        """Wait for the connection task; re-raises a strict-mode ParseError"""
        if self.task is None:
            raise RuntimeError("Handle was not started by ReconnectingLogClient.connect()")
        await asyncio.wait({self.task})
        if self.task.cancelled():
            # cancelled before _serve ran its cleanup
            self.mark_closed()
        else:
            self.task.result()

    def mark_closed(self) -> None:
        if self.state is not ConnectionState.CLOSED:
            self.state = ConnectionState.CLOSED
            self.closed_at = time.monotonic()

    async def close(self) -> None:
        if self.state is ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSING
        if self.websocket is not None:
            await self.websocket.close(code=1000)
        elif self.task is not None and not self.task.done():
            # still in the handshake
            self.task.cancel()
            await self.wait_closed()


def _print_record(value: Any) -> None:
    print(format_record(value), flush=True)


def _print_notice(text: str) -> None:
    print(text, flush=True)


class ReconnectingLogClient:
    """
    Streams JSON log records from a WebSocket endpoint and reconnects forever.

    A single task owns the reconnect loop (``run``): connect, wait for the
    connection to close, sleep ``reconnect_delay`` seconds, connect again.
    Each connection gets a new generation number; frames arriving on a
    handle that is no longer current are dropped.

    Transport errors of any kind close the connection and are only logged.
    Malformed frames are skipped with a warning, unless ``strict_json`` is
    set, in which case the ParseError escapes ``run``.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        on_record: Optional[RecordSink] = None,
        on_notice: Optional[NoticeSink] = None,
    ) -> None:
        self.config = (config or ClientConfig()).validate()
        self.on_record = on_record or _print_record
        self.on_notice = on_notice or _print_notice
        self.generation = 0
        self.attempts = 0
        self.current: Optional[ConnectionHandle] = None
        self._stop_requested = False
        self._stop_event: Optional[asyncio.Event] = None

    # ========================================
    #           CONNECTION LIFECYCLE
    # ========================================

    def connect(self) -> ConnectionHandle:
        """
        Start a new connection attempt and return its handle immediately.

        The returned handle is CONNECTING; it becomes the current generation
        at once, so any older handle still delivering frames is ignored from
        here on. Must be called with a running event loop.
        """
        self.generation += 1
        self.attempts += 1
        handle = ConnectionHandle(generation=self.generation, url=self.config.url)
        self.current = handle
        handle.task = asyncio.get_running_loop().create_task(self._serve(handle))
        return handle

    def _connect_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "open_timeout": self.config.open_timeout,
            "ping_interval": self.config.ping_interval,
            "ping_timeout": self.config.ping_timeout,
            "max_size": self.config.max_size,
            "proxy": None,
        }
        if self.config.is_secure:
            kwargs["ssl"] = self.config.ssl_context()
        return kwargs

    async def _serve(self, handle: ConnectionHandle) -> None:
        ctx = handle.log_context
        logger.debug("Connecting", extra=ctx)
        try:
            async with websockets.connect(handle.url, **self._connect_kwargs()) as ws:
                handle.websocket = ws
                if handle.state is ConnectionState.CLOSING:
                    logger.info("Closed during handshake", extra=ctx)
                    return
                handle.state = ConnectionState.OPEN
                handle.opened_at = time.monotonic()
                logger.info("Connection opened", extra=ctx)
                if self._is_current(handle):
                    self.on_notice(OPEN_NOTICE)

                async for raw in ws:
                    self._handle_frame(handle, raw)

                logger.info("Connection closed by peer (code=%s)", ws.close_code, extra=ctx)
        except ConnectionClosed as e:
            logger.info("Connection lost: %s", e, extra=ctx)
        except _TRANSPORT_ERRORS as e:
            handle.state = ConnectionState.CLOSING
            logger.info("Transport error: %s: %s", type(e).__name__, e, extra=ctx)
        finally:
            handle.mark_closed()

    def _is_current(self, handle: ConnectionHandle) -> bool:
        return handle.generation == self.generation

    def _handle_frame(self, handle: ConnectionHandle, raw: Union[str, bytes]) -> None:
        if not self._is_current(handle):
            logger.debug("Dropping frame from stale connection", extra=handle.log_context)
            return
        try:
            record = decode_record(raw)
            self.on_record(record)
            handle.messages += 1
        except ParseError as e:
            if self.config.strict_json:
                raise
            logger.warning("Skipping malformed frame: %s", e, extra=handle.log_context)

    # ========================================
    #           RECONNECT LOOP
    # ========================================

    async def run(self) -> None:
        """Connect and reconnect until stopped or max_attempts is reached"""
        self._stop_event = asyncio.Event()
        if self._stop_requested:
            self._stop_event.set()

        while not self._stop_requested:
            handle = self.connect()
            try:
                await handle.wait_closed()
            except asyncio.CancelledError:
                handle.task.cancel()
                raise

            if self._stop_requested:
                break
            max_attempts = self.config.max_attempts
            if max_attempts is not None and self.attempts >= max_attempts:
                logger.info("Giving up after %d attempts", self.attempts, extra=handle.log_context)
                break

            logger.info("Reconnecting in %.3gs", self.config.reconnect_delay, extra=handle.log_context)
            await self._sleep(self.config.reconnect_delay)

        logger.debug("Reconnect loop stopped after %d attempts", self.attempts)

    async def _sleep(self, delay: float) -> None:
        if self._stop_event is None:
            raise RuntimeError("_sleep() called outside run()")
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    def stop(self) -> None:
        """Stop the reconnect loop and abort the current connection"""
        self._stop_requested = True
        if self._stop_event is not None:
            self._stop_event.set()
        handle = self.current
        if handle is not None and handle.task is not None and not handle.task.done():
            handle.state = ConnectionState.CLOSING
            handle.task.cancel()
