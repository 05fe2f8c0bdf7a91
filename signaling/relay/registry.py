"""
채팅방 레지스트리

room_id 별로 입장 순서대로 정렬된 연결 목록을 관리합니다.

모든 변경(join/leave)은 단일 asyncio 이벤트 루프 위에서 await 없이 동기적으로
실행되므로 락이 필요 없습니다. 여러 스레드에서 접근하도록 바꾼다면
join/leave/members 에 동기화가 반드시 필요합니다.
"""

from typing import Dict, List, TYPE_CHECKING

from signaling.core.errors import RoomFull
from signaling.core.logging import get_logger

if TYPE_CHECKING:
    from signaling.relay.connection import Connection

logger = get_logger(__name__)

MAX_CLIENTS_IN_ROOM = 2


class RoomRegistry:
    def __init__(self, capacity: int = MAX_CLIENTS_IN_ROOM):
        self.capacity = capacity
        # 채팅방별 연결 목록: {room_id: [connection, ...]} (빈 방은 존재하지 않음)
        self._rooms: Dict[str, List["Connection"]] = {}

    def join(self, room_id: str, connection: "Connection") -> None:
        """연결을 채팅방에 추가합니다. 정원이 찼으면 RoomFull."""
        clients_in_room = self._rooms.get(room_id, [])
        if len(clients_in_room) >= self.capacity:
            raise RoomFull(room_id, self.capacity)

        self._rooms[room_id] = clients_in_room + [connection]

    def leave(self, room_id: str, connection: "Connection") -> None:
        """연결을 채팅방에서 제거하고, 방이 비면 방 자체를 삭제합니다."""
        if room_id not in self._rooms:
            return

        remaining = [client for client in self._rooms[room_id] if client is not connection]
        if remaining:
            self._rooms[room_id] = remaining
        else:
            del self._rooms[room_id]
            logger.info(f"Delete room: '{room_id}'.")

    def members(self, room_id: str) -> List["Connection"]:
        """현재 멤버 스냅샷 (입장 순서)"""
        return list(self._rooms.get(room_id, []))

    def occupancy(self, room_id: str) -> int:
        return len(self._rooms.get(room_id, []))

    def is_full(self, room_id: str) -> bool:
        return self.occupancy(room_id) >= self.capacity

    def room_count(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms
