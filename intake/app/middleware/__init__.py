"""Middleware package for the intake service."""

from intake.app.middleware.rate_limit import (
    RateLimitGuard,
    RateLimitPreset,
    SlidingWindowLimiter,
)
from intake.app.middleware.request_id import RequestIdMiddleware, get_request_id

__all__ = [
    "RateLimitGuard",
    "RateLimitPreset",
    "SlidingWindowLimiter",
    "RequestIdMiddleware",
    "get_request_id",
]
