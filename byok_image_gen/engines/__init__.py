from .base_engine import ImageEngine, backoff_delay
from .factory import EngineFactory

__all__ = ["ImageEngine", "EngineFactory", "backoff_delay"]
