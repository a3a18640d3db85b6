from .cache import router as cache_router
from .monitoring import router as monitoring_router

__all__ = ["cache_router", "monitoring_router"]
