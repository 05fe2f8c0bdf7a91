from typing import Optional

from websockets.http11 import Request, Response

from signaling.api.health import landing_page, health_check
from signaling.core.errors import AuthenticationException, RoomMissing, RoomFull
from signaling.core.logging import get_logger, log_security_event
from signaling.relay.handlers import RelayEngine
from signaling.relay.registry import RoomRegistry
from signaling.utils.auth import TokenVerifier, extract_id_token
from signaling.utils.request import get_path, get_query_param, is_upgrade_request

logger = get_logger(__name__)

QUERY_PARAM_ROOM_NAME = "room"
HEALTH_PATH = "/health"


class UpgradeGateway:
    """
    업그레이드 요청 인증 게이트웨이

    인증(토큰 검증 + 입장 가능 여부)을 WebSocket 핸드셰이크가 끝나기 전에
    수행합니다. 거부된 요청은 핸드셰이크 없이 ``401 Unauthorized`` 와 사유를
    본문으로 받고 연결이 닫힙니다.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        verifier: TokenVerifier,
        engine: RelayEngine,
        client_id: Optional[str] = None,
    ):
        self.registry = registry
        self.verifier = verifier
        self.engine = engine
        self.client_id = client_id

    async def handle_upgrade(self, connection, request: Request) -> Optional[Response]:
        """
        websockets 의 process_request 훅

        Returns:
            Response: 거부 또는 일반 HTTP 응답, None 이면 핸드셰이크 계속 진행
        """
        if not is_upgrade_request(request.headers):
            return self.handle_http(connection, request)

        try:
            room_id = await self.authenticate(request)
        except AuthenticationException as e:
            logger.error(e.message)
            log_security_event(
                logger, "upgrade_rejected", severity="low",
                ip_address=self._remote_ip(connection), error=e.error, reason=e.message,
            )
            return connection.respond(e.status_code, e.message)

        logger.info(f"Upgrade accepted for room '{room_id}'")
        return None

    async def authenticate(self, request: Request) -> str:
        """
        헤더 확인 -> 토큰 검증 -> room 확인 -> 정원 확인 순서로 진행합니다.

        Returns:
            str: 입장할 room_id
        """
        token = extract_id_token(self._protocol_header(request))
        await self.verifier.verify(token, self.client_id)

        room_id = get_query_param(request.path, QUERY_PARAM_ROOM_NAME)
        if not room_id:
            raise RoomMissing()

        # 정원 확인은 검증(비동기)이 끝난 뒤에만 수행하고 자리를 예약하지 않음
        if self.registry.is_full(room_id):
            raise RoomFull(room_id, self.registry.capacity)

        return room_id

    async def handler(self, websocket) -> None:
        """핸드셰이크 완료 후 연결을 RelayEngine 으로 넘깁니다."""
        room_id = get_query_param(websocket.request.path, QUERY_PARAM_ROOM_NAME)
        await self.engine.run(websocket, room_id)

    def handle_http(self, connection, request: Request) -> Response:
        if get_path(request.path) == HEALTH_PATH:
            return health_check(connection, self.registry.room_count(), len(self.engine.connections))
        return landing_page(connection)

    @staticmethod
    def _protocol_header(request: Request) -> Optional[str]:
        values = request.headers.get_all("Sec-WebSocket-Protocol")
        if not values:
            return None
        return ", ".join(values)

    @staticmethod
    def _remote_ip(connection) -> Optional[str]:
        remote_address = getattr(connection, "remote_address", None)
        if not remote_address:
            return None
        return remote_address[0]
