# shopchat/domain/services/enrichment_svc.py

from __future__ import annotations
from typing import Any, Dict
import json
import logging
import re

from pydantic import ValidationError

from shopchat.domain.errors import ModelInvalidJSONError
from shopchat.domain.models.chat import ACTION_ADAPTER, CART_CATALOG_FIELDS, AddToCartAction, ChatReply, NoAction
from shopchat.domain.services.catalog_svc import CatalogCache
from shopchat.domain.services.constants import PLACEHOLDER_MESSAGE

logger = logging.getLogger(__name__)

# Regex to strip code fences (``` or ```json) from LLM output
_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)

def _strip_fences(s: str) -> str:
    """Remove ``` or ```json fences the LLM might add."""
    return _CODE_FENCE_RE.sub("", s).strip()

def decode_reply(raw_text: str) -> Dict[str, Any]:
    """Strict JSON decode of the completion payload into a dict."""
    try:
        parsed = json.loads(_strip_fences(raw_text or ""))
    except json.JSONDecodeError as e:
        raise ModelInvalidJSONError(raw_text, str(e)) from e
    if not isinstance(parsed, dict):
        raise ModelInvalidJSONError(raw_text, f"expected an object, got {type(parsed).__name__}")
    return parsed


class ResponseEnricher:
    """
    Turns the model payload into a ChatReply and replaces every catalog fact
    the model asserted for a cart action with the tenant's catalog record.
    """

    def __init__(self, catalog: CatalogCache):
        self.catalog = catalog

    def _coerce_action(self, raw_action: Any):
        if raw_action is None:
            return NoAction()
        try:
            return ACTION_ADAPTER.validate_python(raw_action)
        except ValidationError as e:
            logger.warning(f"Invalid model action {raw_action!r}: {e.error_count()} errors")

        # catalog-owned cart fields are overwritten by enrichment; retry without them
        if isinstance(raw_action, dict) and raw_action.get("type") == "add_to_cart":
            stripped = {k: v for k, v in raw_action.items() if k not in CART_CATALOG_FIELDS}
            try:
                return ACTION_ADAPTER.validate_python(stripped)
            except ValidationError as e:
                logger.warning(f"Dropping add_to_cart without usable productId/quantity: {e.error_count()} errors")
        return NoAction()

    async def _enrich_cart(self, domain: str, action: AddToCartAction) -> AddToCartAction:
        product = await self.catalog.find(domain, action.productId)
        if product is None:
            logger.warning(f"add_to_cart for unknown productId={action.productId} domain={domain}")
            return action
        return action.model_copy(update={
            "url": product.url_for(domain),
            "price_sale": product.price.sale,
            "price_regular": product.price.regular,
            "title": product.title,
            "image": product.main_image,
            "slug": product.slug,
        })

    async def parse(self, domain: str, raw_text: str) -> ChatReply:
        data = decode_reply(raw_text)

        action = self._coerce_action(data.get("action"))
        if isinstance(action, AddToCartAction):
            action = await self._enrich_cart(domain, action)

        message = data.get("message")
        audio = data.get("audio_description")
        return ChatReply(
            message=message if isinstance(message, str) and message.strip() else PLACEHOLDER_MESSAGE,
            audio_description=audio if isinstance(audio, str) else "",
            action=action,
        )
