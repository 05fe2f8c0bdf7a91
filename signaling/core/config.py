from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()  # .env 파일 로드

BUILD_ENVS = ("PROD", "DEV")


class Settings(BaseSettings):
    # PROD: 평문 HTTP, DEV: 자체 서명 인증서로 TLS (필수)
    build_env: str
    host: str = "0.0.0.0"
    port: int = 8000
    ssl_keyfile: str = "key.pem"
    ssl_certfile: str = "cert.pem"

    # 인증
    dev_token: Optional[str] = None
    client_id: Optional[str] = None
    google_certs_url: str = "https://www.googleapis.com/oauth2/v3/certs"
    google_issuers: List[str] = ["accounts.google.com", "https://accounts.google.com"]
    jwks_cache_seconds: int = 3600
    verification_timeout: float = 10.0

    # 채팅방 / 연결 유지
    max_clients_in_room: int = 2
    heartbeat_interval: float = 30.0
    max_queued_messages: int = 256

    debug: bool = False
    log_dir: str = "logs"

    class Config:
        env_file = ".env"

    @field_validator("build_env")
    @classmethod
    def validate_build_env(cls, value: str) -> str:
        if value not in BUILD_ENVS:
            raise ValueError(f"BUILD_ENV is incorrect: {value}")
        return value

    @property
    def is_prod(self) -> bool:
        return self.build_env == "PROD"


settings = Settings()
