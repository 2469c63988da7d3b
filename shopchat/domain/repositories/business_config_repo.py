# shopchat/domain/repositories/business_config_repo.py
from __future__ import annotations
from typing import Any, Dict, Optional
import logging

import httpx

from shopchat.domain.errors import ConfigFetchError

logger = logging.getLogger(__name__)


class BusinessConfigClient:
    """
    HTTP adapter for the store-management service that owns each tenant's
    business configuration (opening hours, shipping, payment, tone...).

    GET {url} with header {header}: {domain} -> JSON array; first element is
    the tenant config, {} when the array is empty.
    """

    def __init__(
        self,
        url: str,
        *,
        header: str = "domain",
        timeout_s: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.header = header
        self._client = httpx.AsyncClient(timeout=timeout_s, transport=transport)

    @property
    def is_configured(self) -> bool:
        return bool(self.url)

    async def fetch(self, domain: str) -> Dict[str, Any]:
        if not self.is_configured:
            logger.warning(f"BUSINESS_CONFIG_URL not set; using empty config for domain={domain}")
            return {}

        try:
            resp = await self._client.get(self.url, headers={self.header: domain})
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise ConfigFetchError(
                f"Business config returned {e.response.status_code} for domain={domain}"
            ) from e
        except httpx.HTTPError as e:
            raise ConfigFetchError(f"Business config unreachable for domain={domain}: {e}") from e
        except ValueError as e:
            raise ConfigFetchError(f"Business config is not JSON for domain={domain}") from e

        if isinstance(data, list):
            first = data[0] if data else {}
        else:
            first = data
        if not isinstance(first, dict):
            logger.warning(f"Unexpected business config shape for domain={domain}: {type(first).__name__}")
            return {}
        return first

    async def close(self) -> None:
        await self._client.aclose()
