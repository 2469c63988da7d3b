# shopchat/domain/repositories/product_repo.py

from __future__ import annotations
from typing import Iterable, List
import logging
from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError
from shopchat.domain.models.product import Product

logger = logging.getLogger(__name__)

# Fields the assistant needs; variations/attributes stay in the DB
_PROJECTION = {
    "_id": 1,
    "domain": 1,
    "title": 1,
    "description_short": 1,
    "description_long": 1,
    "price": 1,
    "slug": 1,
    "image_default": 1,
    "category": 1,
    "is_available": 1,
    "stock": 1,
}

def _as_object_ids(ids: Iterable[str]) -> list:
    """Catalog ids are ObjectIds; keep anything else as a raw string match."""
    out = []
    for pid in ids:
        try:
            out.append(ObjectId(pid))
        except (InvalidId, TypeError):
            out.append(pid)
    return out

class ProductRepo:
    """
    Read-only product repository backed by the catalog 'products' collection.
    Every query is scoped by tenant domain.
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "products"):
        self.col = db[collection_name]

    def _to_products(self, docs: List[dict]) -> List[Product]:
        products: List[Product] = []
        for doc in docs:
            try:
                products.append(Product.model_validate(doc))
            except ValidationError as e:
                logger.warning(f"Skipping malformed product _id={doc.get('_id')}: {e.error_count()} errors")
        return products

    async def list_by_domain(self, domain: str) -> List[Product]:
        """All live (non-trashed) products of one tenant, in collection order."""
        cursor = self.col.find(
            {"domain": domain, "is_trash.status": {"$ne": True}},
            _PROJECTION,
        )
        docs = [doc async for doc in cursor]
        logger.debug(f"Loaded {len(docs)} product docs for domain={domain}")
        return self._to_products(docs)

    async def get_many_by_ids(self, domain: str, ids: List[str]) -> List[Product]:
        """Batch fetch. Order of the result is NOT guaranteed; callers re-sort."""
        if not ids:
            return []
        cursor = self.col.find(
            {"_id": {"$in": _as_object_ids(ids)}, "domain": domain},
            _PROJECTION,
        )
        return self._to_products([doc async for doc in cursor])
