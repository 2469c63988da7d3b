# shopchat/core/lifespan.py
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from openai import AsyncOpenAI
from pymongo.errors import PyMongoError

from shopchat.core.config import Settings, get_settings
from shopchat.db import mongo, redis as r
from shopchat.domain.repositories.business_config_repo import BusinessConfigClient
from shopchat.domain.repositories.conversation_repo import SessionStore
from shopchat.domain.repositories.product_repo import ProductRepo
from shopchat.domain.repositories.vector_cache_repo import VectorCacheRepo
from shopchat.domain.services.catalog_svc import CatalogCache, ConfigCache
from shopchat.domain.services.chat_svc import ChatOrchestrator
from shopchat.domain.services.completion_svc import CompletionClient
from shopchat.domain.services.embedding_svc import EmbeddingClient
from shopchat.domain.services.enrichment_svc import ResponseEnricher
from shopchat.domain.services.similarity_index import SimilarityIndex
from shopchat.utils.cache import TenantCache

logger = logging.getLogger(__name__)


def build_orchestrator(settings: Settings, *, catalog_db, clients_db, redis, openai_client, config_client) -> ChatOrchestrator:
    """Wire the chat pipeline from live connections."""
    product_repo = ProductRepo(catalog_db)
    catalog = CatalogCache(product_repo, TenantCache("catalog", ttl_s=settings.catalog_cache_ttl))
    vector_cache = VectorCacheRepo(redis, prefix=settings.vector_cache_prefix) if redis else None
    embedder = EmbeddingClient(
        openai_client,
        settings.OPENAI_EMBEDDING_MODEL,
        cache=vector_cache,
        cache_ttl=settings.vector_cache_ttl,
        batch_size=settings.embedding_batch_size,
    )
    return ChatOrchestrator(
        catalog=catalog,
        config=ConfigCache(config_client, TenantCache("business_config", ttl_s=settings.config_cache_ttl)),
        # index freshness follows the catalog fingerprint, not a TTL
        index=SimilarityIndex(embedder, TenantCache("similarity_index")),
        products=product_repo,
        sessions=SessionStore(
            clients_db,
            max_history=settings.max_history_length,
            redis=redis,
            lock_ttl=settings.session_lock_ttl,
        ),
        completion=CompletionClient(
            openai_client,
            settings.OPENAI_CHAT_MODEL,
            temperature=settings.chat_temperature,
            max_tokens=settings.chat_max_tokens,
            timeout_s=settings.openai_timeout_s,
        ),
        enricher=ResponseEnricher(catalog),
        retrieval_k=settings.retrieval_k,
        currency_symbol=settings.currency_symbol,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()

    # --- Startup ---
    await mongo.connect()
    await r.connect()

    openai_client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY, timeout=settings.openai_timeout_s)
    config_client = BusinessConfigClient(
        settings.BUSINESS_CONFIG_URL,
        header=settings.business_config_header,
        timeout_s=settings.business_config_timeout_s,
    )
    chat = build_orchestrator(
        settings,
        catalog_db=mongo.get_catalog_db(),
        clients_db=mongo.get_clients_db(),
        redis=r.get_redis(),
        openai_client=openai_client,
        config_client=config_client,
    )
    try:
        await chat.sessions.ensure_indexes()
    except PyMongoError as e:
        # the unique (domain, userId) index is required; retried on next boot
        logger.error(f"Could not ensure conversation indexes: {e}")
    app.state.chat = chat

    # Application runs
    yield

    # --- Shutdown ---
    await config_client.close()
    await openai_client.close()
    await r.disconnect()
    await mongo.disconnect()
    logger.info("Shutdown complete")
