import asyncio
import os
import uuid
from types import SimpleNamespace

import pytest
import pytest_asyncio
from websockets.exceptions import ConnectionClosedError
from websockets.protocol import State

# settings 는 import 시점에 로드되므로 signaling 을 import 하기 전에 설정
os.environ.setdefault("BUILD_ENV", "PROD")

from signaling.relay.handlers import RelayEngine  # noqa: E402
from signaling.relay.registry import RoomRegistry  # noqa: E402

_CLOSED = object()
_LOST = object()


class FakeTransport:
    def __init__(self, websocket):
        self.websocket = websocket
        self.aborted = False

    def abort(self):
        self.aborted = True
        self.websocket.connection_lost()


class FakeWebSocket:
    """websockets ServerConnection 과 같은 인터페이스를 가진 테스트용 연결"""

    def __init__(self, path: str = "/?room=r1"):
        self.id = uuid.uuid4()
        self.request = SimpleNamespace(path=path)
        self.state = State.OPEN
        self.sent = []
        self.pings = []
        self.close_code = None
        self.close_reason = None
        self.transport = FakeTransport(self)
        self.stalled = False
        self._incoming = asyncio.Queue()

    async def send(self, message):
        if self.state is not State.OPEN:
            raise ConnectionClosedError(None, None)
        if self.stalled:
            # 수신 측이 읽지 않아 drain 이 끝나지 않는 상황
            await asyncio.get_running_loop().create_future()
        self.sent.append(message)

    async def ping(self):
        if self.state is not State.OPEN:
            raise ConnectionClosedError(None, None)
        if self.stalled:
            await asyncio.get_running_loop().create_future()
        waiter = asyncio.get_running_loop().create_future()
        self.pings.append(waiter)
        return waiter

    def pong(self):
        """마지막 ping 에 대한 pong 수신"""
        self.pings[-1].set_result(0.0)

    async def close(self, code: int = 1000, reason: str = ""):
        self.close_code = code
        self.close_reason = reason
        self.state = State.CLOSED
        self._incoming.put_nowait(_CLOSED)

    def connection_lost(self):
        self.close_code = 1006
        self.state = State.CLOSED
        self._incoming.put_nowait(_LOST)

    def feed(self, message):
        """클라이언트가 보낸 메시지 수신"""
        self._incoming.put_nowait(message)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._incoming.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        if item is _LOST:
            raise ConnectionClosedError(None, None)
        return item


async def _wait_until(predicate, timeout: float = 2.0):
    """조건이 참이 될 때까지 이벤트 루프를 양보합니다."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


@pytest.fixture
def wait_until():
    return _wait_until


@pytest.fixture
def fake_websocket():
    """FakeWebSocket 팩토리"""
    return FakeWebSocket


@pytest.fixture
def registry() -> RoomRegistry:
    return RoomRegistry()


@pytest.fixture
def engine(registry) -> RelayEngine:
    return RelayEngine(registry)


@pytest_asyncio.fixture
async def joined_pair(engine, fake_websocket, wait_until):
    """r1 방에 입장한 두 연결 (A, B) 과 중계 태스크"""
    ws_a = fake_websocket()
    ws_b = fake_websocket()
    task_a = asyncio.create_task(engine.run(ws_a, "r1"))
    await wait_until(lambda: engine.registry.occupancy("r1") == 1)
    task_b = asyncio.create_task(engine.run(ws_b, "r1"))
    await wait_until(lambda: engine.registry.occupancy("r1") == 2)

    yield ws_a, ws_b

    for ws in (ws_a, ws_b):
        if ws.state is State.OPEN:
            await ws.close()
    await asyncio.gather(task_a, task_b)
