from .request_metrics import RequestMetricsMiddleware

__all__ = ["RequestMetricsMiddleware"]
