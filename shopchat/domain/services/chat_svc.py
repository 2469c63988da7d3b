# shopchat/domain/services/chat_svc.py

from __future__ import annotations
from typing import List, Optional, Sequence
import logging
import time

from pymongo.errors import PyMongoError
from redis.exceptions import RedisError

from shopchat.domain.errors import ChatPipelineError, ModelInvalidJSONError
from shopchat.domain.models.chat import ChatReply, NoAction
from shopchat.domain.models.conversation import Message
from shopchat.domain.models.product import Product
from shopchat.domain.repositories.conversation_repo import SessionStore
from shopchat.domain.repositories.product_repo import ProductRepo
from shopchat.domain.services.catalog_svc import CatalogCache, ConfigCache
from shopchat.domain.services.completion_svc import CompletionClient
from shopchat.domain.services.constants import (
    EMPTY_CATALOG_AUDIO,
    EMPTY_CATALOG_MESSAGE,
    FALLBACK_AUDIO,
    FALLBACK_MESSAGE,
)
from shopchat.domain.services.enrichment_svc import ResponseEnricher
from shopchat.domain.services.prompts import describe_products, system_prompt
from shopchat.domain.services.similarity_index import DEFAULT_K, SimilarityIndex

logger = logging.getLogger(__name__)


def empty_catalog_reply() -> ChatReply:
    return ChatReply(message=EMPTY_CATALOG_MESSAGE, audio_description=EMPTY_CATALOG_AUDIO, action=NoAction())

def fallback_reply() -> ChatReply:
    return ChatReply(message=FALLBACK_MESSAGE, audio_description=FALLBACK_AUDIO, action=NoAction())

def restore_rank(records: Sequence[Product], ranked_ids: Sequence[str]) -> List[Product]:
    """Reorder batch-fetched records to the ranked id order; ids not fetched are dropped."""
    by_id = {p.id: p for p in records}
    return [by_id[pid] for pid in ranked_ids if pid in by_id]


class ChatOrchestrator:
    """
    One shopper turn, end to end.

    Flow:
      1) Load the tenant catalog (empty -> canned reply, no model calls).
      2) Rank products for the user text; fetch records by id; restore rank order.
      3) Under the session lock: load history, or create the session with a
         freshly built system prompt when absent.
      4) Call the completion service with history + user message.
      5) Enrich the reply; persist user + raw assistant messages; return.
    Any failure in 1-5 returns the fallback reply and leaves the stored
    history without a half-applied turn. Nothing is raised to the caller.
    """

    def __init__(
        self,
        *,
        catalog: CatalogCache,
        config: ConfigCache,
        index: SimilarityIndex,
        products: ProductRepo,
        sessions: SessionStore,
        completion: CompletionClient,
        enricher: ResponseEnricher,
        retrieval_k: int = DEFAULT_K,
        currency_symbol: str = "S/",
    ):
        self.catalog = catalog
        self.config = config
        self.index = index
        self.products = products
        self.sessions = sessions
        self.completion = completion
        self.enricher = enricher
        self.retrieval_k = retrieval_k
        self.currency_symbol = currency_symbol

    async def _ranked_products(self, domain: str, catalog: Sequence[Product], user_message: str) -> List[Product]:
        ranked_ids = await self.index.search(domain, catalog, user_message, k=self.retrieval_k)
        records = await self.products.get_many_by_ids(domain, ranked_ids)
        ranked = restore_rank(records, ranked_ids)
        logger.debug(f"Ranked products domain={domain} ids={[p.id for p in ranked]}")
        return ranked

    async def _init_session(
        self, domain: str, user_id: str, user_email: str, ranked: Sequence[Product], account_ref: Optional[str]
    ) -> List[Message]:
        business_config = await self.config.get(domain)
        prompt = system_prompt(domain, describe_products(ranked, domain, self.currency_symbol), business_config)
        history = [Message(role="system", content=prompt)]
        await self.sessions.set_history(domain, user_id, user_email, history, account_ref=account_ref)
        logger.info(f"Session created domain={domain} user_id={user_id} prompt_chars={len(prompt)}")
        return history

    async def _run_turn(
        self, domain: str, user_id: str, user_email: str, user_message: str, account_ref: Optional[str]
    ) -> ChatReply:
        catalog = await self.catalog.get(domain)
        if not catalog:
            logger.info(f"Empty catalog for domain={domain}")
            return empty_catalog_reply()

        ranked = await self._ranked_products(domain, catalog, user_message)

        async with self.sessions.lock(domain, user_id):
            history = await self.sessions.get_history(domain, user_id)
            if not history:
                history = await self._init_session(domain, user_id, user_email, ranked, account_ref)

            user_turn = Message(role="user", content=user_message)
            raw = await self.completion.complete([m.for_completion() for m in history + [user_turn]])
            reply = await self.enricher.parse(domain, raw)

            await self.sessions.append_messages(
                domain, user_id, user_email,
                [user_turn, Message(role="assistant", content=raw)],
                account_ref=account_ref,
            )
        return reply

    async def handle_turn(
        self,
        domain: str,
        user_id: str,
        user_email: str,
        user_message: str,
        *,
        account_ref: Optional[str] = None,
    ) -> ChatReply:
        t0 = time.perf_counter()
        logger.info(f"Chat turn start domain={domain} user_id={user_id} chars={len(user_message)}")
        try:
            reply = await self._run_turn(domain, user_id, user_email, user_message, account_ref)
        except ModelInvalidJSONError as e:
            logger.error(f"Invalid model JSON domain={domain} user_id={user_id}: {e.reason}; raw={e.raw!r}")
            return fallback_reply()
        except ChatPipelineError as e:
            logger.error(f"Chat turn failed domain={domain} user_id={user_id}: {type(e).__name__}: {e}")
            return fallback_reply()
        except PyMongoError as e:
            logger.error(f"Session storage failed domain={domain} user_id={user_id}: {e}")
            return fallback_reply()
        except RedisError as e:
            logger.error(f"Redis failed during turn domain={domain} user_id={user_id}: {e}")
            return fallback_reply()

        logger.info(
            f"Chat turn done domain={domain} user_id={user_id} action={reply.action.type} "
            f"time={time.perf_counter() - t0:.3f}s"
        )
        return reply

    def invalidate_tenant(self, domain: str) -> dict:
        """Drop every cached artifact of one tenant; next turn reloads them."""
        return {
            "catalog": self.catalog.invalidate(domain),
            "config": self.config.invalidate(domain),
            "index": self.index.invalidate(domain),
        }
