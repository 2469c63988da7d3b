# shopchat/domain/repositories/vector_cache_repo.py
from __future__ import annotations
from typing import Optional, Sequence, List
from redis.asyncio import Redis
import json, hashlib

"""
Note:
    - Adapter for caching text embeddings in Redis, keyed by model + text hash.
    - Product texts rarely change, so rebuilding a tenant index after a cache
      expiry or a restart only pays for the texts that did change.
    - No business logic here, just cache access (batched get, set).
"""

def _stable_hash(value: str, size: int = 8) -> str:
    """
    Short, stable hash used for key versioning (model) and text addressing.
    """
    return hashlib.sha1(value.encode("utf-8")).hexdigest()[:size]

class VectorCacheRepo:
    """
    Adapter for storing and retrieving text embeddings (vectors) in Redis.
    """
    def __init__(self, redis: Redis, prefix: str = "vec"):
        self.redis = redis
        self.prefix = prefix

    def key(self, text: str, model: str) -> str:
        """
        Build a unique cache key for an embedded text, based on the text and model.
        """
        return f"{self.prefix}:{_stable_hash(model)}:{_stable_hash(text, 40)}"

    async def get_many(self, keys: Sequence[str]) -> List[Optional[list[float]]]:
        """Batched MGET; returns None for every missing key, preserving order."""
        if not keys:
            return []
        raws = await self.redis.mget(list(keys))
        return [json.loads(raw) if raw else None for raw in raws]

    async def set(self, key: str, vector: Sequence[float], ttl: int) -> None:
        """
        Store the embedding vector in Redis under the given key with a TTL.
        """
        await self.redis.set(key, json.dumps(list(vector), separators=(",", ":")), ex=ttl)
