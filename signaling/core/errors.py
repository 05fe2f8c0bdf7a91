from http import HTTPStatus
from typing import Optional, Dict, Any


# =============================================================================
# 커스텀 예외 클래스들
# =============================================================================

class BaseCustomException(Exception):
    """기본 커스텀 예외 클래스"""
    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error = error
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """예외를 딕셔너리로 변환"""
        return {
            "error": self.error,
            "message": self.message,
            "details": self.details,
            "status_code": self.status_code
        }


class AuthenticationException(BaseCustomException):
    """
    업그레이드 요청 거부 예외

    인증/입장 실패는 모두 핸드셰이크 완료 전에 401 로 응답합니다.
    """
    def __init__(
        self,
        error: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=HTTPStatus.UNAUTHORIZED,
            error=error,
            message=message,
            details=details
        )


class AuthHeaderMissing(AuthenticationException):
    """sec-websocket-protocol 헤더 없음"""
    def __init__(self, message: str = "Incorrect HTTP header 'sec-websocket-protocol' with OAuth2 token"):
        super().__init__(error="auth_header_missing", message=message)


class AuthHeaderMalformed(AuthenticationException):
    """sec-websocket-protocol 헤더 형식 오류"""
    def __init__(self, message: str = "Incorrect HTTP header 'sec-websocket-protocol' with OAuth2 token"):
        super().__init__(error="auth_header_malformed", message=message)


class VerificationFailed(AuthenticationException):
    """토큰 검증 실패 (identity provider 거부, 만료, audience 불일치 등)"""
    def __init__(self, message: str = "Token verification failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(error="verification_failed", message=message, details=details)


class RoomMissing(AuthenticationException):
    """room 쿼리 파라미터 없음"""
    def __init__(self, message: str = "Room number is not specified"):
        super().__init__(error="room_missing", message=message)


class RoomFull(AuthenticationException):
    """채팅방 정원 초과"""
    def __init__(self, room_id: str, capacity: int):
        self.room_id = room_id
        self.capacity = capacity
        super().__init__(
            error="room_full",
            message=f"Room volume is exceeded: {capacity}",
            details={"room_id": room_id, "capacity": capacity}
        )


# =============================================================================
# 연결 종료 사유 (에러가 아닌 teardown 원인)
# =============================================================================

class ConnectionTerminated(Exception):
    """연결 종료 원인 기본 클래스"""
    reason = "closed"

    def to_dict(self) -> Dict[str, Any]:
        return {"reason": self.reason, "detail": str(self)}


class TransportClosed(ConnectionTerminated):
    """클라이언트 정상/비정상 연결 종료"""
    reason = "transport_closed"

    def __init__(self, code: Optional[int] = None, close_reason: str = ""):
        self.code = code
        self.close_reason = close_reason
        super().__init__(f"Transport closed: code '{code}', reason '{close_reason}'")

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "code": self.code, "close_reason": self.close_reason}


class OutboxOverflow(ConnectionTerminated):
    """수신 측이 읽지 않아 전송 대기열이 가득 참"""
    reason = "outbox_overflow"

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"More than {limit} messages pending")


class LivenessTimeout(ConnectionTerminated):
    """연속 두 번의 ping 에 pong 이 없음"""
    reason = "liveness_timeout"

    def __init__(self, interval: float):
        self.interval = interval
        super().__init__(f"No pong received within {interval}s")
