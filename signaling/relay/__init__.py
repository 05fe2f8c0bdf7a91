"""
WebSocket 시그널링 중계 모듈

주요 구성 요소:
- registry: 채팅방별 연결 관리 (정원 2명)
- connection: 연결 상태 / ping-pong 생존 상태 / 전송 대기열
- handlers: 메시지 중계와 연결 생명주기
"""

from .registry import RoomRegistry
from .handlers import RelayEngine

__all__ = [
    "RoomRegistry",
    "RelayEngine",
]
