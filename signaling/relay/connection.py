import asyncio
import enum
from typing import Optional, Union

from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from signaling.core.errors import ConnectionTerminated, OutboxOverflow
from signaling.core.logging import get_logger

logger = get_logger(__name__)

Data = Union[str, bytes]

# 수신 측이 읽지 않을 때 쌓아둘 수 있는 최대 메시지 수
OUTBOX_SIZE = 256
# ping 프레임이 전송 버퍼를 빠져나가길 기다리는 최대 시간
PING_TIMEOUT = 5.0


class ConnectionState(str, enum.Enum):
    UPGRADING = "upgrading"
    AUTHENTICATING = "authenticating"
    JOINING = "joining"
    RELAYING = "relaying"
    CLOSED = "closed"


class Liveness(str, enum.Enum):
    """
    연결 유지 상태

    ALIVE --(ping 전송)--> AWAITING_PONG --(pong 수신)--> ALIVE
    AWAITING_PONG 상태에서 다음 주기가 오면 연결을 종료합니다.
    """
    ALIVE = "alive"
    AWAITING_PONG = "awaiting_pong"


class Connection:
    """핸드셰이크가 끝난 클라이언트 WebSocket 하나와 그 상태"""

    def __init__(self, websocket, room_id: str, outbox_size: int = OUTBOX_SIZE):
        self.websocket = websocket
        self._room_id = room_id
        # 송신자의 수신 루프가 이 연결의 전송을 기다리지 않도록 전송은 별도 태스크가 담당
        self._outbox: asyncio.Queue = asyncio.Queue(maxsize=outbox_size)
        self._writer: Optional[asyncio.Task] = None
        self.state = ConnectionState.JOINING
        self.liveness = Liveness.ALIVE
        self.close_cause: Optional[ConnectionTerminated] = None

    @property
    def room_id(self) -> str:
        return self._room_id

    @property
    def id(self) -> str:
        return str(self.websocket.id)

    @property
    def is_open(self) -> bool:
        return self.websocket.state is State.OPEN

    @property
    def is_alive(self) -> bool:
        return self.liveness is Liveness.ALIVE

    async def send(self, message: Data) -> bool:
        """메시지를 그대로 전송합니다. 이미 끊긴 연결이면 False."""
        try:
            await self.websocket.send(message)
            return True
        except ConnectionClosed:
            logger.debug(f"Skip send to closed connection {self.id}")
            return False

    def start_writer(self) -> None:
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain_outbox())

    def stop_writer(self) -> None:
        if self._writer is not None:
            self._writer.cancel()
            self._writer = None

    def enqueue(self, message: Data) -> bool:
        """
        전송 대기열에 메시지를 넣습니다. 기다리지 않으므로 송신자의 수신 루프를
        막지 않습니다. 대기열이 가득 차면 연결을 끊고 False.
        """
        try:
            self._outbox.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(f"Outbox of connection {self.id} is full, terminating")
            self.terminate(OutboxOverflow(self._outbox.maxsize))
            return False
        return True

    @property
    def pending(self) -> int:
        return self._outbox.qsize()

    async def _drain_outbox(self) -> None:
        # 대기열 순서 = 송신자별 전송 순서
        while True:
            message = await self._outbox.get()
            if not await self.send(message):
                return

    async def probe(self, timeout: float = PING_TIMEOUT) -> None:
        """AWAITING_PONG 으로 전환하고 ping 을 보냅니다. pong 이 오면 ALIVE 로 복귀."""
        self.liveness = Liveness.AWAITING_PONG
        try:
            pong_waiter = await asyncio.wait_for(self.websocket.ping(), timeout)
        except ConnectionClosed:
            return
        except asyncio.TimeoutError:
            # 전송 버퍼가 비워지지 않는 연결은 AWAITING_PONG 으로 남아 다음 주기에 종료
            logger.debug(f"Ping to connection {self.id} not flushed within {timeout}s")
            return
        pong_waiter.add_done_callback(self._on_pong)

    def _on_pong(self, pong_waiter: asyncio.Future) -> None:
        if pong_waiter.cancelled() or pong_waiter.exception() is not None:
            return
        self.mark_alive()

    def mark_alive(self) -> None:
        self.liveness = Liveness.ALIVE

    def terminate(self, cause: ConnectionTerminated) -> None:
        """close 핸드셰이크 없이 transport 를 즉시 끊습니다."""
        self.close_cause = cause
        self.websocket.transport.abort()

    def __repr__(self) -> str:
        return f"<Connection {self.id} room={self.room_id!r} state={self.state.value}>"
