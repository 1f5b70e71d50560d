"""Custom middleware components."""

from hubauth.middleware.logging import LoggingMiddleware
from hubauth.middleware.request_id import RequestIDMiddleware

__all__ = ["RequestIDMiddleware", "LoggingMiddleware"]
