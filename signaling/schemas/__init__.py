from .identity import Identity
from .health import HealthStatus

__all__ = ["Identity", "HealthStatus"]
