# shopchat/domain/services/embedding_svc.py

from __future__ import annotations
from typing import List, Optional, Sequence
from itertools import islice
import logging
import time

from openai import AsyncOpenAI, OpenAIError
from redis.exceptions import RedisError

from shopchat.domain.errors import EmbeddingCallError
from shopchat.domain.models.product import Product
from shopchat.domain.repositories.vector_cache_repo import VectorCacheRepo

logger = logging.getLogger(__name__)

# ---------- Text builder ------------------------------------------------------

def product_text(product: Product) -> str:
    """Deterministic source text indexed for a product: name + short description."""
    return f"Nombre: {product.title}, Descripción: {product.description_short or ''}"

def _chunks(seq, n):
    it = iter(seq)
    while True:
        batch = list(islice(it, n))
        if not batch:
            break
        yield batch

# ---------- Client ------------------------------------------------------------

class EmbeddingClient:
    """
    Text -> fixed-dimension vector through the OpenAI embeddings API.

    When a VectorCacheRepo is given, embed_many() reads/writes vectors by
    text hash so unchanged product texts are never embedded twice.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        *,
        cache: Optional[VectorCacheRepo] = None,
        cache_ttl: int = 7 * 24 * 3600,
        batch_size: int = 64,
    ):
        self.client = client
        self.model = model
        self.cache = cache
        self.cache_ttl = cache_ttl
        self.batch_size = batch_size

    async def _create(self, texts: List[str]) -> List[List[float]]:
        try:
            resp = await self.client.embeddings.create(model=self.model, input=texts)
        except OpenAIError as e:
            raise EmbeddingCallError(f"Embedding request failed size={len(texts)}: {e}") from e
        if len(resp.data) != len(texts):
            raise EmbeddingCallError(f"batch_mismatch expected={len(texts)} got={len(resp.data)}")
        return [item.embedding for item in resp.data]

    async def embed_one(self, text: str) -> List[float]:
        return (await self._create([text]))[0]

    async def embed_many(self, texts: Sequence[str]) -> List[List[float]]:
        """Embed texts in order; cache hits skip the API, misses go in batches."""
        t0 = time.perf_counter()
        vectors: List[Optional[List[float]]] = [None] * len(texts)

        keys: List[str] = []
        if self.cache is not None:
            keys = [self.cache.key(t, self.model) for t in texts]
            try:
                cached = await self.cache.get_many(keys)
            except RedisError as e:
                # Redis is an optimization only
                logger.warning(f"Vector cache read failed, embedding everything: {e}")
                cached = [None] * len(texts)
            for i, vec in enumerate(cached):
                vectors[i] = vec

        missing = [i for i, v in enumerate(vectors) if v is None]
        cache_hits = len(texts) - len(missing)

        for batch in _chunks(missing, self.batch_size):
            logger.debug(f"[embed_many] openai_call batch_size={len(batch)}")
            fresh = await self._create([texts[i] for i in batch])
            for i, vec in zip(batch, fresh):
                vectors[i] = vec
                if self.cache is not None:
                    try:
                        await self.cache.set(keys[i], vec, ttl=self.cache_ttl)
                    except RedisError as e:
                        logger.warning(f"Vector cache write failed: {e}")

        logger.info(
            f"[embed_many] done total={len(texts)} cache_hits={cache_hits} "
            f"embedded={len(missing)} time_ms={(time.perf_counter() - t0) * 1000:.1f}"
        )
        return vectors  # type: ignore[return-value]
