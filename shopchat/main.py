from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from shopchat.core.config import get_settings
from shopchat.core.lifespan import lifespan
from shopchat.core.logging import configure_logging
from shopchat.core.rate_limit import setup_rate_limiter
from shopchat.api.v1.routers.chat import router as chat_router
from shopchat.api.v1.routers.health import router as health_router

settings = get_settings()
configure_logging(level=logging.DEBUG if settings.DEBUG else logging.INFO)

app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# ------- CORS -------
# ALLOWED_ORIGINS is a CSV, e.g. "https://shop-a.com,https://shop-b.com".
# Storefront widgets are embedded on tenant domains, so "*" when unset.
allowed_origins = [o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins or ["*"],
    allow_credentials=False,                        # keep False: allowed together with "*"
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    max_age=86400,
)

# ------- Rate limit -------
setup_rate_limiter(app)                      # chat_rate_limit on /chatbot/question

# ------- Routes -------
app.include_router(health_router)
app.include_router(chat_router)              # /chatbot/question, tenant cache hook
