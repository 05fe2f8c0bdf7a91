import asyncio
import ssl
from contextlib import asynccontextmanager
from typing import Optional

from websockets.asyncio.server import serve

from signaling.api.gateway import UpgradeGateway
from signaling.core.config import Settings, settings
from signaling.core.logging import get_logger, setup_logging
from signaling.relay import RelayEngine, RoomRegistry
from signaling.services.heartbeat_monitor import HeartbeatMonitor
from signaling.utils.auth import ID_TOKEN_SUBPROTOCOL, TokenVerifier

logger = get_logger(__name__)


class SignalingServer:
    """시그널링 서버 구성 요소 묶음"""

    def __init__(self, config: Settings):
        self.config = config
        self.registry = RoomRegistry(capacity=config.max_clients_in_room)
        self.engine = RelayEngine(self.registry, config.max_queued_messages)
        self.verifier = TokenVerifier(
            certs_url=config.google_certs_url,
            issuers=config.google_issuers,
            dev_token=config.dev_token,
            cache_seconds=config.jwks_cache_seconds,
            timeout=config.verification_timeout,
        )
        self.gateway = UpgradeGateway(self.registry, self.verifier, self.engine, config.client_id)
        self.monitor = HeartbeatMonitor(lambda: self.engine.connections, config.heartbeat_interval)

    def serve(self, host: Optional[str] = None, port: Optional[int] = None):
        """websockets 서버 컨텍스트 매니저를 반환합니다."""
        return serve(
            self.gateway.handler,
            host or self.config.host,
            self.config.port if port is None else port,
            process_request=self.gateway.handle_upgrade,
            subprotocols=[ID_TOKEN_SUBPROTOCOL],
            ssl=create_ssl_context(self.config),
            # ping 은 HeartbeatMonitor 가 담당
            ping_interval=None,
        )


def create_ssl_context(config: Settings) -> Optional[ssl.SSLContext]:
    """DEV 는 자체 서명 인증서로 TLS, PROD 는 평문 (TLS 는 앞단에서 처리)"""
    if config.is_prod:
        return None

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(config.ssl_certfile, config.ssl_keyfile)
    return context


@asynccontextmanager
async def lifespan(server: SignalingServer):
    # Startup
    await server.monitor.start()
    yield
    # Shutdown
    await server.monitor.stop()


async def main():
    setup_logging()
    server = SignalingServer(settings)

    async with lifespan(server):
        async with server.serve() as ws_server:
            logger.info(f"Listening on port {settings.port}")
            await ws_server.serve_forever()
    logger.info("Server closed")


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
