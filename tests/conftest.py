import asyncio
import socket
import time
from typing import Awaitable, Callable, List, Optional

import pytest
import pytest_asyncio
import websockets

from logstream.config import ClientConfig


Script = Callable[[websockets.ServerConnection, int], Awaitable[None]]


class LogServer:
    """Local log endpoint that records handshakes and runs a script per connection."""

    def __init__(self, script: Script) -> None:
        self.script = script
        self.handshakes: List[float] = []
        self.close_started: List[float] = []
        self.paths: List[str] = []
        self.server: Optional[websockets.Server] = None

    async def handler(self, ws: websockets.ServerConnection) -> None:
        self.handshakes.append(time.monotonic())
        self.paths.append(ws.request.path)
        await self.script(ws, len(self.handshakes))

    async def close(self, ws: websockets.ServerConnection) -> None:
        self.close_started.append(time.monotonic())
        await ws.close()

    @property
    def port(self) -> int:
        assert self.server is not None
        return next(iter(self.server.sockets)).getsockname()[1]

    @property
    def url(self) -> str:
        return f"ws://127.0.0.1:{self.port}/log"


@pytest_asyncio.fixture
async def log_server():
    servers: List[LogServer] = []

    async def start(script: Script) -> LogServer:
        srv = LogServer(script)
        srv.server = await websockets.serve(srv.handler, "127.0.0.1", 0)
        servers.append(srv)
        return srv

    yield start

    for srv in servers:
        srv.server.close()
        await srv.server.wait_closed()


@pytest.fixture
def dead_url() -> str:
    """ws:// URL on a local port nobody listens on"""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
    return f"ws://127.0.0.1:{port}/log"


def make_config(url: str, **kwargs) -> ClientConfig:
    kwargs.setdefault("reconnect_delay", 0.05)
    kwargs.setdefault("open_timeout", 2.0)
    return ClientConfig(url=url, **kwargs)


async def wait_for(predicate, timeout: float = 3.0) -> bool:
    loop = asyncio.get_running_loop()
    end = loop.time() + timeout
    while loop.time() < end:
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return False
