from datetime import datetime
from http import HTTPStatus

from websockets.http11 import Response

from signaling.schemas.health import HealthStatus

LANDING_PAGE = "<h2>WebRTC WebSocket-based Signaling Server</h2>"


def _with_content_type(response: Response, content_type: str) -> Response:
    del response.headers["Content-Type"]
    response.headers["Content-Type"] = content_type
    return response


def landing_page(connection) -> Response:
    """업그레이드가 아닌 일반 GET 요청에 대한 안내 페이지"""
    response = connection.respond(HTTPStatus.OK, LANDING_PAGE)
    return _with_content_type(response, "text/html; charset=utf-8")


def health_check(connection, rooms: int, connections: int) -> Response:
    """Application health check endpoint"""
    health = HealthStatus(rooms=rooms, connections=connections, timestamp=datetime.utcnow())
    response = connection.respond(HTTPStatus.OK, health.model_dump_json())
    return _with_content_type(response, "application/json")
