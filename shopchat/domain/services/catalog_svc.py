# shopchat/domain/services/catalog_svc.py
from __future__ import annotations
from typing import Any, Dict, List, Optional
import logging
import time

from pymongo.errors import PyMongoError

from shopchat.domain.errors import ConfigFetchError
from shopchat.domain.models.product import Product
from shopchat.domain.repositories.business_config_repo import BusinessConfigClient
from shopchat.domain.repositories.product_repo import ProductRepo
from shopchat.utils.cache import TenantCache

logger = logging.getLogger(__name__)


class CatalogCache:
    """Per-tenant memoized product list."""

    def __init__(self, repo: ProductRepo, cache: TenantCache[List[Product]]):
        self.repo = repo
        self.cache = cache

    async def _load(self, domain: str) -> List[Product]:
        t0 = time.perf_counter()
        try:
            products = await self.repo.list_by_domain(domain)
        except PyMongoError as e:
            raise ConfigFetchError(f"Catalog unavailable for domain={domain}: {e}") from e
        logger.info("catalog loaded domain=%s products=%s time=%.3fs", domain, len(products), time.perf_counter() - t0)
        return products

    async def get(self, domain: str) -> List[Product]:
        return await self.cache.get_or_load(domain, lambda: self._load(domain))

    async def find(self, domain: str, product_id: str) -> Optional[Product]:
        """Authoritative catalog record for one id of this tenant, if any."""
        for product in await self.get(domain):
            if product.id == product_id:
                return product
        return None

    def invalidate(self, domain: str) -> bool:
        return self.cache.invalidate(domain)


class ConfigCache:
    """Per-tenant memoized business configuration."""

    def __init__(self, client: BusinessConfigClient, cache: TenantCache[Dict[str, Any]]):
        self.client = client
        self.cache = cache

    async def get(self, domain: str) -> Dict[str, Any]:
        return await self.cache.get_or_load(domain, lambda: self.client.fetch(domain))

    def invalidate(self, domain: str) -> bool:
        return self.cache.invalidate(domain)
