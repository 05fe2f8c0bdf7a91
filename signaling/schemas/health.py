from datetime import datetime
from pydantic import BaseModel


class HealthStatus(BaseModel):
    status: str = "alive"
    rooms: int
    connections: int
    timestamp: datetime
