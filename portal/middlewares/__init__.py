from portal.middlewares.db_middleware import DatabaseMiddleware
from portal.middlewares.rate_limit_middleware import RateLimitMiddleware

__all__ = ["DatabaseMiddleware", "RateLimitMiddleware"]
