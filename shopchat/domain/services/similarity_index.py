# shopchat/domain/services/similarity_index.py
"""
In-memory nearest-neighbour index over product embeddings, one per tenant.

Scores are cosine similarities (vectors are L2-normalized at build time).
Results are ordered best-first; equal scores keep index insertion order,
so repeated queries against an unchanged index return identical lists.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Sequence
import hashlib
import logging
import time

import numpy as np

from shopchat.domain.errors import EmbeddingCallError
from shopchat.domain.models.product import Product
from shopchat.domain.services.embedding_svc import EmbeddingClient, product_text
from shopchat.utils.cache import TenantCache

logger = logging.getLogger(__name__)

DEFAULT_K = 5


def catalog_fingerprint(product_ids: Sequence[str], texts: Sequence[str]) -> str:
    """Changes whenever a product is added, removed, reordered or re-described."""
    h = hashlib.sha1()
    for pid, text in zip(product_ids, texts):
        h.update(pid.encode("utf-8"))
        h.update(b"\x1f")
        h.update(text.encode("utf-8"))
        h.update(b"\x1e")
    return h.hexdigest()


def _normalize(matrix: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(matrix, axis=-1, keepdims=True)
    norms[norms == 0] = 1.0
    return matrix / norms


@dataclass(frozen=True)
class ProductIndex:
    tenant: str
    product_ids: List[str]
    texts: List[str]
    vectors: np.ndarray = field(repr=False)  # shape (n, dim), rows normalized
    fingerprint: str = ""

    def __len__(self) -> int:
        return len(self.product_ids)

    @property
    def dimension(self) -> int:
        return int(self.vectors.shape[1]) if len(self) else 0

    def nearest(self, query_vector: Sequence[float], k: int) -> List[str]:
        if not len(self) or k <= 0:
            return []
        q = np.asarray(query_vector, dtype=np.float32)
        if q.shape[0] != self.dimension:
            raise EmbeddingCallError(
                f"Query dimension {q.shape[0]} does not match index dimension {self.dimension}"
            )
        scores = self.vectors @ _normalize(q)
        # stable sort keeps insertion order among equal scores
        order = np.argsort(-scores, kind="stable")[:k]
        return [self.product_ids[i] for i in order]


class SimilarityIndex:
    """Builds, caches and queries per-tenant ProductIndex objects."""

    def __init__(self, embedder: EmbeddingClient, cache: TenantCache[ProductIndex]):
        self.embedder = embedder
        self.cache = cache

    async def _build(self, tenant: str, products: Sequence[Product], fingerprint: str) -> ProductIndex:
        t0 = time.perf_counter()
        ids = [p.id for p in products]
        texts = [product_text(p) for p in products]
        vectors = await self.embedder.embed_many(texts)

        dims = {len(v) for v in vectors}
        if len(dims) != 1:
            raise EmbeddingCallError(f"Inconsistent embedding dimensions for tenant={tenant}: {sorted(dims)}")

        matrix = _normalize(np.asarray(vectors, dtype=np.float32))
        index = ProductIndex(tenant=tenant, product_ids=ids, texts=texts, vectors=matrix, fingerprint=fingerprint)
        logger.info(
            "similarity index built tenant=%s products=%s dim=%s time=%.3fs",
            tenant, len(index), index.dimension, time.perf_counter() - t0,
        )
        return index

    async def build_or_get(self, tenant: str, products: Sequence[Product]) -> ProductIndex:
        """
        Return the cached index for tenant, (re)building it when absent or
        when the product set no longer matches what was indexed.
        """
        fingerprint = catalog_fingerprint([p.id for p in products], [product_text(p) for p in products])
        current = self.cache.peek(tenant)
        if current is not None and current.fingerprint == fingerprint:
            return current
        if current is not None:
            logger.info("similarity index stale tenant=%s, rebuilding", tenant)

        if not products:
            index = ProductIndex(tenant, [], [], np.zeros((0, 0), dtype=np.float32), fingerprint)
        else:
            index = await self._build(tenant, products, fingerprint)
        self.cache.put(tenant, index)
        return index

    async def query(self, index: ProductIndex, text: str, k: int = DEFAULT_K) -> List[str]:
        """Ids of the k products nearest to text, best first."""
        if not len(index):
            return []
        vector = await self.embedder.embed_one(text)
        ids = index.nearest(vector, k)
        logger.debug("similarity query tenant=%s k=%s ids=%s", index.tenant, k, ids)
        return ids

    async def search(self, tenant: str, products: Sequence[Product], text: str, k: int = DEFAULT_K) -> List[str]:
        if not products:
            return []
        index = await self.build_or_get(tenant, products)
        return await self.query(index, text, k)

    def invalidate(self, tenant: str) -> bool:
        return self.cache.invalidate(tenant)
