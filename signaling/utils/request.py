from typing import Optional
from urllib.parse import urlsplit, parse_qs


def get_query_param(path: str, param_name: str) -> Optional[str]:
    """요청 경로의 쿼리 문자열에서 파라미터 값을 꺼냅니다 (없으면 None)."""
    query = urlsplit(path).query
    values = parse_qs(query).get(param_name)
    if not values:
        return None
    return values[0]


def get_path(path: str) -> str:
    return urlsplit(path).path or "/"


def is_upgrade_request(headers) -> bool:
    """WebSocket 업그레이드 요청인지 확인합니다."""
    upgrade = headers.get("Upgrade")
    return upgrade is not None and upgrade.lower() == "websocket"
