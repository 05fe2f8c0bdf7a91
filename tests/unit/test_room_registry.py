import pytest

from signaling.core.errors import RoomFull
from signaling.relay.registry import RoomRegistry, MAX_CLIENTS_IN_ROOM


class TestRoomRegistryJoin:
    """채팅방 입장 테스트"""

    def test_default_capacity(self):
        """기본 정원은 2명"""
        assert RoomRegistry().capacity == MAX_CLIENTS_IN_ROOM == 2

    def test_join_creates_room(self, registry):
        """첫 입장 시 방 생성"""
        connection = object()

        registry.join("r1", connection)

        assert "r1" in registry
        assert registry.occupancy("r1") == 1
        assert registry.members("r1") == [connection]

    def test_join_keeps_join_order(self, registry):
        """멤버 목록은 입장 순서"""
        first, second = object(), object()

        registry.join("r1", first)
        registry.join("r1", second)

        assert registry.members("r1") == [first, second]
        assert registry.is_full("r1") is True

    def test_join_full_room_raises(self, registry):
        """정원 초과 시 RoomFull, 기존 멤버는 유지"""
        first, second, third = object(), object(), object()
        registry.join("r1", first)
        registry.join("r1", second)

        with pytest.raises(RoomFull) as exc_info:
            registry.join("r1", third)

        assert exc_info.value.capacity == 2
        assert exc_info.value.room_id == "r1"
        assert exc_info.value.message == "Room volume is exceeded: 2"
        assert registry.occupancy("r1") == 2
        assert third not in registry.members("r1")

    def test_rooms_are_independent(self, registry):
        """다른 방의 정원은 서로 영향 없음"""
        registry.join("r1", object())
        registry.join("r1", object())

        registry.join("r2", object())

        assert registry.occupancy("r1") == 2
        assert registry.occupancy("r2") == 1
        assert registry.room_count() == 2

    def test_custom_capacity(self):
        registry = RoomRegistry(capacity=1)
        registry.join("r1", object())

        with pytest.raises(RoomFull):
            registry.join("r1", object())


class TestRoomRegistryLeave:
    """채팅방 퇴장 테스트"""

    def test_leave_last_member_deletes_room(self, registry):
        """마지막 멤버가 나가면 방 삭제"""
        connection = object()
        registry.join("r1", connection)

        registry.leave("r1", connection)

        assert "r1" not in registry
        assert registry.occupancy("r1") == 0
        assert registry.members("r1") == []
        assert registry.room_count() == 0

    def test_leave_keeps_remaining_member(self, registry):
        first, second = object(), object()
        registry.join("r1", first)
        registry.join("r1", second)

        registry.leave("r1", first)

        assert registry.members("r1") == [second]
        assert registry.is_full("r1") is False

    def test_leave_is_idempotent(self, registry):
        """같은 연결로 여러 번 leave 해도 no-op"""
        first, second = object(), object()
        registry.join("r1", first)
        registry.join("r1", second)

        registry.leave("r1", first)
        registry.leave("r1", first)

        assert registry.members("r1") == [second]

    def test_leave_unknown_room(self, registry):
        """존재하지 않는 방에서 leave 해도 방이 생기지 않음"""
        registry.leave("missing", object())

        assert "missing" not in registry
        assert registry.room_count() == 0

    def test_seat_frees_after_leave(self, registry):
        """퇴장 후 빈 자리에 다시 입장 가능"""
        first, second, third = object(), object(), object()
        registry.join("r1", first)
        registry.join("r1", second)
        registry.leave("r1", first)

        registry.join("r1", third)

        assert registry.members("r1") == [second, third]


class TestRoomRegistryQueries:
    """조회 테스트"""

    def test_empty_room_queries(self, registry):
        assert registry.members("r1") == []
        assert registry.occupancy("r1") == 0
        assert registry.is_full("r1") is False

    def test_members_returns_snapshot(self, registry):
        """반환된 목록을 수정해도 레지스트리는 변하지 않음"""
        connection = object()
        registry.join("r1", connection)

        snapshot = registry.members("r1")
        snapshot.clear()

        assert registry.members("r1") == [connection]
