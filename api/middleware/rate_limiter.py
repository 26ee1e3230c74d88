"""
Rate Limiting Middleware
========================

Rate limiting using slowapi, keyed by client IP.

Each application gets its own ``Limiter`` (and so its own counters) on
``app.state.limiter``. Limits for the auth endpoints are read per request
from ``app.state.settings`` (``login_rate_limit``, ``register_rate_limit``,
``refresh_rate_limit``), so the Settings given to ``create_app`` apply.
"""

import logging
from typing import Callable

from fastapi import FastAPI, Request
from limits import parse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from slowapi.wrappers import Limit

from config import Settings


logger = logging.getLogger(__name__)


def rate_limit(setting_name: str) -> Callable:
    """
    Build a route dependency enforcing the limit named by ``setting_name``.

    Usage in routes:
        @router.post("/login", dependencies=[Depends(login_limit)])
        async def login(...):
            ...

    Raises:
        RateLimitExceeded: The client used up the limit (429)
    """
    async def check(request: Request) -> None:
        limiter: Limiter = request.app.state.limiter
        if not limiter.enabled:
            return

        item = parse(getattr(request.app.state.settings, setting_name))
        client = get_remote_address(request)
        if not limiter.limiter.hit(item, setting_name, client):
            logger.warning(f"Rate limit {item} hit by {client} on {request.url.path}")
            raise RateLimitExceeded(
                Limit(item, get_remote_address, setting_name, False, None, None, None, 1, False)
            )

    return check


login_limit = rate_limit("login_rate_limit")
register_limit = rate_limit("register_rate_limit")
refresh_limit = rate_limit("refresh_rate_limit")


def setup_rate_limiting(app: FastAPI, settings: Settings) -> None:
    """
    Attach a fresh limiter to the app state.

    A 429 is rendered by the error handlers like every other error.
    """
    app.state.limiter = Limiter(
        key_func=get_remote_address,
        enabled=settings.rate_limit_enabled,
    )
