"""Rate limiting for the public intake endpoints.

Every client address gets a fixed window: the first request opens it, each
request increments the counter, and the window is replaced wholesale once it
expires. State lives in a single in-process table guarded by one lock, so it
is neither persisted nor shared between instances.

Clients are identified by the first X-Forwarded-For hop while
RATE_LIMIT_TRUST_FORWARDED_FOR is on (the default). That header is
client-controlled, so turn the setting off whenever the service is reachable
without a reverse proxy that overwrites it; otherwise a caller can rotate the
header to get a fresh window on every request.
"""

import hashlib
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from fastapi import Request, Response

from intake.app.core.config import Settings, settings
from intake.app.core.logging import get_log_context, get_logger
from intake.app.core.utils import format_timestamp, seconds_until
from intake.app.exceptions import RateLimitExceededError

logger = get_logger(__name__)

UNKNOWN_CLIENT = "unknown"


@dataclass
class ClientWindowRecord:
    """Counter state for one client identifier."""
    count: int
    window_reset_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a rate limit check."""
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after: int = 0

    @property
    def headers(self) -> Dict[str, str]:
        """Rate limit metadata carried by every gated response."""
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": format_timestamp(self.reset_at),
        }


class SlidingWindowLimiter:
    """In-memory per-client window limiter.

    The read-modify-write on a client's record happens under one lock for the
    whole table, so concurrent requests from the same client cannot both see a
    stale pre-rollover record. The lock is never held across an await.

    Records for inactive clients are kept for the lifetime of the process.
    """

    def __init__(self, limit: int, window_seconds: float, name: str = "default"):
        """Initialize the limiter.

        Args:
            limit: Maximum admitted requests per window (0 rejects everything)
            window_seconds: Window length in seconds
            name: Preset name, used in logs
        """
        if limit < 0:
            raise ValueError("limit must not be negative")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.limit = limit
        self.window_seconds = window_seconds
        self.name = name
        self._records: Dict[str, ClientWindowRecord] = {}
        self._lock = threading.Lock()

    def admit(self, client_id: str, now: Optional[float] = None) -> RateLimitDecision:
        """Count a request from ``client_id`` and decide whether to admit it.

        The counter is incremented before the limit check, so a rejected
        request still shows up in the record.
        """
        if now is None:
            now = time.time()
        key = client_id or UNKNOWN_CLIENT

        with self._lock:
            record = self._records.get(key)
            if record is None or now > record.window_reset_at:
                record = ClientWindowRecord(
                    count=0, window_reset_at=now + self.window_seconds
                )
                self._records[key] = record

            record.count += 1
            count = record.count
            reset_at = record.window_reset_at

        return RateLimitDecision(
            allowed=count <= self.limit,
            limit=self.limit,
            remaining=max(0, self.limit - count),
            reset_at=reset_at,
            retry_after=seconds_until(reset_at, now),
        )

    def get_record(self, client_id: str) -> Optional[ClientWindowRecord]:
        """Return a copy of the current record for ``client_id``, if any."""
        with self._lock:
            record = self._records.get(client_id)
            if record is None:
                return None
            return ClientWindowRecord(record.count, record.window_reset_at)

    def record_count(self) -> int:
        """Number of client records currently held."""
        with self._lock:
            return len(self._records)


class RateLimitPreset(str, Enum):
    """Endpoint classes with their own limiter."""
    STRICT = "strict"
    STANDARD = "standard"


def build_rate_limiters(config: Settings = settings) -> Dict[RateLimitPreset, SlidingWindowLimiter]:
    """Create one limiter per preset from settings.

    Presets are fixed for the lifetime of the application.
    """
    return {
        RateLimitPreset.STRICT: SlidingWindowLimiter(
            limit=config.rate_limit_strict_requests,
            window_seconds=config.rate_limit_strict_window_seconds,
            name=RateLimitPreset.STRICT.value,
        ),
        RateLimitPreset.STANDARD: SlidingWindowLimiter(
            limit=config.rate_limit_standard_requests,
            window_seconds=config.rate_limit_standard_window_seconds,
            name=RateLimitPreset.STANDARD.value,
        ),
    }


def get_rate_limit_headers(request: Request) -> Dict[str, str]:
    """Headers of the decision admitted for this request, or empty if ungated."""
    decision: Optional[RateLimitDecision] = getattr(request.state, "rate_limit", None)
    return decision.headers if decision is not None else {}


class RateLimitGuard:
    """Apply a limiter preset to a request.

    Looks up the preset's limiter on ``app.state.rate_limiters``, writes the
    rate limit headers onto the outgoing response and raises
    RateLimitExceededError when the client is over its quota. Endpoints call
    the guard after FastAPI has validated the body, so malformed requests
    never consume quota.
    """

    def __init__(self, preset: RateLimitPreset, trust_forwarded_for: Optional[bool] = None):
        self.preset = preset
        self.trust_forwarded_for = trust_forwarded_for

    def _trust_forwarded_for(self) -> bool:
        if self.trust_forwarded_for is not None:
            return self.trust_forwarded_for
        return settings.rate_limit_trust_forwarded_for

    def get_client_address(self, request: Request) -> str:
        """Network address of the caller, or ``"unknown"``."""
        if self._trust_forwarded_for():
            forwarded = request.headers.get("X-Forwarded-For")
            if forwarded:
                first_hop = forwarded.split(",")[0].strip()
                if first_hop:
                    return first_hop
        if request.client and request.client.host:
            return request.client.host
        return UNKNOWN_CLIENT

    def get_client_key(self, request: Request) -> str:
        """Rate limit key for the request.

        The address is hashed so raw IPs are never kept in memory or logs.
        """
        address = self.get_client_address(request)
        digest = hashlib.sha256(address.encode()).hexdigest()[:32]
        return f"ratelimit:ip:{digest}"

    def __call__(self, request: Request, response: Response) -> RateLimitDecision:
        limiter: SlidingWindowLimiter = request.app.state.rate_limiters[self.preset]
        client_key = self.get_client_key(request)
        decision = limiter.admit(client_key)

        if not decision.allowed:
            logger.info(
                "Rate limit exceeded",
                extra=get_log_context(
                    request_id=getattr(request.state, "request_id", None),
                    client_id=client_key,
                    preset=self.preset.value,
                    retry_after=decision.retry_after,
                ),
            )
            raise RateLimitExceededError(
                limit=decision.limit,
                reset_at=decision.reset_at,
                retry_after=decision.retry_after,
            )

        # Error handlers build fresh responses; they copy the headers from here
        request.state.rate_limit = decision
        response.headers.update(decision.headers)
        return decision
