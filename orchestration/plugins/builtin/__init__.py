"""Built-in plugins."""

from .cache import CachePlugin
from .metrics import MetricsPlugin
from .rate_limiter import RateLimiterPlugin

__all__ = ["CachePlugin", "MetricsPlugin", "RateLimiterPlugin"]
