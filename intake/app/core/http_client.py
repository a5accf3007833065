"""Shared HTTP client management for connection pooling.

The client is created in the application lifespan and handed to the AI
provider, so outbound classifier calls reuse connections.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx

from intake.app.core.config import settings


@asynccontextmanager
async def init_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """Create the pooled HTTP client and close it on exit.

    Used in the FastAPI lifespan:

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            async with init_http_client() as http_client:
                yield
    """
    limits = httpx.Limits(
        max_connections=settings.httpx_max_connections,
        max_keepalive_connections=settings.httpx_max_keepalive_connections,
        keepalive_expiry=settings.httpx_keepalive_expiry,
    )
    timeout = httpx.Timeout(
        connect=settings.httpx_connect_timeout,
        read=settings.httpx_read_timeout,
        write=settings.httpx_write_timeout,
        pool=settings.httpx_pool_timeout,
    )

    async with httpx.AsyncClient(timeout=timeout, limits=limits) as client:
        yield client
