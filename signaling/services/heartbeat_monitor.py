"""
Heartbeat 모니터링 서비스

주기적으로 모든 연결에 WebSocket ping 을 보내고, 이전 주기의 ping 에 응답하지
않은 연결은 강제로 끊습니다. transport 가 close 이벤트를 주지 않는
half-open 연결을 회수하는 유일한 수단입니다.
"""

import asyncio
from typing import Callable, Iterable, Optional

from signaling.core.errors import LivenessTimeout
from signaling.core.logging import get_logger
from signaling.relay.connection import Connection, Liveness, PING_TIMEOUT

logger = get_logger(__name__)

HEARTBEAT_INTERVAL = 30.0


class HeartbeatMonitor:
    """ping/pong 기반 연결 생존 감시"""

    def __init__(
        self,
        connections: Callable[[], Iterable[Connection]],
        interval: float = HEARTBEAT_INTERVAL,
        ping_timeout: float = PING_TIMEOUT,
    ):
        self._connections = connections
        self.interval = interval
        self.ping_timeout = ping_timeout
        self.running = False
        self.task: Optional[asyncio.Task] = None

    async def start(self):
        """모니터링 시작"""
        if self.running:
            logger.warning("Heartbeat monitor is already running")
            return

        self.running = True
        self.task = asyncio.create_task(self._monitor_connections())
        logger.info(f"Heartbeat monitor started (interval {self.interval}s)")

    async def stop(self):
        """모니터링 중지"""
        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            self.task = None
        logger.info("Heartbeat monitor stopped")

    async def _monitor_connections(self):
        try:
            while self.running:
                await asyncio.sleep(self.interval)
                await self.run_cycle()
        except asyncio.CancelledError:
            logger.info("Heartbeat monitor cancelled")
            raise

    async def run_cycle(self) -> int:
        """
        한 주기를 실행합니다.

        AWAITING_PONG 상태(직전 ping 에 무응답)인 연결은 종료하고,
        나머지는 AWAITING_PONG 으로 바꾼 뒤 ping 을 보냅니다.

        Returns:
            int: 이번 주기에 종료한 연결 수
        """
        terminated = 0
        probing = []
        for connection in list(self._connections()):
            if connection.liveness is Liveness.AWAITING_PONG:
                logger.warning(
                    f"Connection {connection.id} in room '{connection.room_id}' missed heartbeat, terminating",
                    extra={"event_type": "heartbeat_timeout", "connection_id": connection.id},
                )
                connection.terminate(LivenessTimeout(self.interval))
                terminated += 1
                continue

            probing.append(connection)

        # 전송이 막힌 연결의 ping 은 ping_timeout 까지만 대기
        await asyncio.gather(*(c.probe(self.ping_timeout) for c in probing))
        return terminated
