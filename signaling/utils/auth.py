import time
from typing import Any, Dict, List, Optional

import httpx
from jose import JWTError, jwt

from signaling.core.errors import AuthHeaderMissing, AuthHeaderMalformed, VerificationFailed
from signaling.core.logging import get_logger, log_authentication_event
from signaling.schemas.identity import Identity

logger = get_logger(__name__)

TOKEN_HEADER_KEY = "id_token, "
ID_TOKEN_SUBPROTOCOL = "id_token"


def extract_id_token(header: Optional[str]) -> str:
    """
    sec-websocket-protocol 헤더에서 ID 토큰을 추출합니다.

    헤더는 정확히 ``id_token, <token>`` 형식이어야 합니다.
    """
    if not header:
        raise AuthHeaderMissing()

    if not header.startswith(TOKEN_HEADER_KEY):
        raise AuthHeaderMalformed()

    token = header[len(TOKEN_HEADER_KEY):].strip()
    if not token:
        raise AuthHeaderMalformed()

    return token


class TokenVerifier:
    """
    Google OAuth2 ID 토큰 검증기

    서명 키(JWKS)는 identity provider 에서 비동기로 가져와 캐시하고,
    토큰은 python-jose 로 서명/만료/audience/issuer 를 검증합니다.
    개발용 토큰(dev_token)이 설정되어 있으면 일치하는 토큰은 검증 없이 통과합니다.
    """

    def __init__(
        self,
        certs_url: str,
        issuers: List[str],
        dev_token: Optional[str] = None,
        algorithms: Optional[List[str]] = None,
        cache_seconds: int = 3600,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.certs_url = certs_url
        self.issuers = issuers
        self.dev_token = dev_token
        self.algorithms = algorithms or ["RS256"]
        self.cache_seconds = cache_seconds
        self.timeout = timeout
        self._transport = transport
        self._keys: Optional[Dict[str, Any]] = None
        self._keys_fetched_at = 0.0

    async def verify(self, token: str, audience: Optional[str]) -> Identity:
        """토큰을 검증하고 Identity 를 반환합니다. 실패 시 VerificationFailed."""
        if self.dev_token and token == self.dev_token:
            logger.info("DEV_TOKEN is correct, skip user verification")
            return Identity(subject="dev", bypassed=True)

        if not audience:
            logger.error("CLIENT_ID is not specified")
            raise VerificationFailed("CLIENT_ID is not specified")

        keys = await self._get_signing_keys()

        try:
            payload = jwt.decode(
                token,
                keys,
                algorithms=self.algorithms,
                audience=audience,
                issuer=self.issuers,
                options={"verify_at_hash": False},
            )
        except JWTError as e:
            log_authentication_event(logger, "verify_id_token", success=False, reason=str(e))
            raise VerificationFailed(f"Incorrect token: {e}")

        subject = payload.get("sub")
        if not subject:
            raise VerificationFailed("Incorrect token: missing subject")

        identity = Identity(subject=subject, email=payload.get("email"), name=payload.get("name"))
        logger.info(f"User {identity.name} <{identity.email}> is verified (userid#{identity.subject})")
        log_authentication_event(logger, "verify_id_token", subject=identity.subject, email=identity.email)
        return identity

    async def _get_signing_keys(self) -> Dict[str, Any]:
        """캐시된 JWKS 를 반환하고, 만료되었으면 다시 가져옵니다."""
        now = time.monotonic()
        if self._keys is not None and now - self._keys_fetched_at < self.cache_seconds:
            return self._keys

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(self.certs_url)
                response.raise_for_status()
                keys = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to fetch identity provider certificates: {e}")
            raise VerificationFailed("Identity provider is unavailable")

        self._keys = keys
        self._keys_fetched_at = now
        return keys
