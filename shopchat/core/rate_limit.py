# shopchat/core/rate_limit.py
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from shopchat.core.config import get_settings
from shopchat.domain.services.constants import RATE_LIMIT_MESSAGE

logger = logging.getLogger(__name__)


def shopper_key(request: Request) -> str:
    """
    Rate limit key: the gateway user id when present, else the client address.
    Shoppers behind one proxy IP do not share a budget.
    """
    user_id = request.headers.get("X-User-Id")
    if user_id:
        return f"user:{user_id}"
    return get_remote_address(request)


def chat_rate_limit() -> str:
    return get_settings().chat_rate_limit


_settings = get_settings()

# Redis keeps the window shared across workers; memory otherwise.
limiter = Limiter(
    key_func=shopper_key,
    storage_uri=_settings.REDIS_URL or None,
    strategy="fixed-window",
    in_memory_fallback_enabled=bool(_settings.REDIS_URL),
    swallow_errors=True,
)


async def _rate_limit_exceeded(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(f"Rate limit exceeded key={shopper_key(request)} path={request.url.path} limit={exc.detail}")
    return JSONResponse(status_code=429, content={"detail": RATE_LIMIT_MESSAGE})


def setup_rate_limiter(app: FastAPI) -> None:
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded)
