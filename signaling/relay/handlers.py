from typing import Set

from websockets.exceptions import ConnectionClosed
from websockets.frames import CloseCode

from signaling.core.errors import RoomFull, TransportClosed
from signaling.core.logging import (
    get_logger,
    log_websocket_event,
    set_connection_context,
    clear_connection_context,
)
from signaling.relay.connection import Connection, ConnectionState, Data, OUTBOX_SIZE
from signaling.relay.registry import RoomRegistry

logger = get_logger(__name__)


class RelayEngine:
    """
    승격된 연결의 생명주기를 담당합니다.

    JOINING -> RELAYING -> CLOSED 순서로 진행하며, 받은 메시지는 같은 방의
    다른 멤버에게 그대로 전달합니다.
    """

    def __init__(self, registry: RoomRegistry, outbox_size: int = OUTBOX_SIZE):
        self.registry = registry
        self.outbox_size = outbox_size
        # RELAYING 상태의 연결들 (LivenessMonitor 순회 대상)
        self.connections: Set[Connection] = set()

    async def run(self, websocket, room_id: str) -> None:
        """연결 하나를 방에 등록하고 연결이 끊길 때까지 메시지를 중계합니다."""
        connection = Connection(websocket, room_id, self.outbox_size)
        set_connection_context(connection.id, room_id)

        try:
            if not await self.register(connection):
                return

            try:
                async for message in websocket:
                    await self.relay(connection, message)
            except ConnectionClosed:
                # 비정상 종료(1006 등)도 teardown 경로는 동일
                pass
            finally:
                self.disconnect(connection)
        finally:
            clear_connection_context()

    async def register(self, connection: Connection) -> bool:
        """JOINING -> RELAYING. 방이 가득 찼으면 연결을 닫고 False."""
        try:
            self.registry.join(connection.room_id, connection)
        except RoomFull as e:
            # 게이트웨이 검사 이후 다른 연결이 먼저 입장한 경우
            logger.warning(f"Room '{connection.room_id}' filled up before connection {connection.id} joined")
            connection.state = ConnectionState.CLOSED
            await connection.websocket.close(code=CloseCode.TRY_AGAIN_LATER, reason=e.message)
            return False

        connection.state = ConnectionState.RELAYING
        connection.start_writer()
        self.connections.add(connection)
        logger.info(f"Connect to room: '{connection.room_id}'.")
        log_websocket_event(
            logger, "connected", connection.id, connection.room_id,
            occupancy=self.registry.occupancy(connection.room_id),
        )
        return True

    async def relay(self, sender: Connection, message: Data) -> int:
        """
        sender 를 제외한 같은 방의 살아있는 멤버에게 메시지를 전달합니다.

        Returns:
            int: 메시지를 전송 대기열에 넣은 멤버 수
        """
        delivered = 0
        for client in self.registry.members(sender.room_id):
            if client is sender or not client.is_alive or not client.is_open:
                continue
            if client.enqueue(message):
                delivered += 1
        logger.debug(f"Send message from {sender.id} to {delivered} peer(s)")
        return delivered

    def disconnect(self, connection: Connection) -> None:
        """RELAYING -> CLOSED. 여러 번 호출되어도 leave 는 한 번만 실행됩니다."""
        if connection.state is ConnectionState.CLOSED:
            return

        connection.state = ConnectionState.CLOSED
        connection.stop_writer()
        self.connections.discard(connection)
        self.registry.leave(connection.room_id, connection)

        if connection.close_cause is None:
            connection.close_cause = TransportClosed(
                connection.websocket.close_code, connection.websocket.close_reason or ""
            )

        logger.info(
            f"Close connection: code '{connection.websocket.close_code}', "
            f"reason '{connection.websocket.close_reason}'."
        )
        log_websocket_event(
            logger, "disconnected", connection.id, connection.room_id,
            **connection.close_cause.to_dict(),
        )
