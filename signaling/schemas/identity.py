from typing import Optional
from pydantic import BaseModel


class Identity(BaseModel):
    """토큰 검증 결과 (입장 판단에만 사용하고 저장하지 않음)"""
    subject: str
    email: Optional[str] = None
    name: Optional[str] = None
    bypassed: bool = False
