# shopchat/domain/repositories/conversation_repo.py

from __future__ import annotations
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, List, Optional
import logging

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING
from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from shopchat.domain.errors import SessionBusyError, SessionCorruptError
from shopchat.domain.models.conversation import ConversationSession, Message
from shopchat.utils.locks import KeyedLock, RedisLock

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY = 10

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

def prune_history(messages: List[Message], max_length: int) -> List[Message]:
    """
    Bound history to max_length, always keeping messages[0] (the system
    prompt) plus the most recent max_length-1 entries.
    """
    if len(messages) <= max_length:
        return messages
    keep_tail = max(max_length - 1, 0)
    rest = messages[1:]
    return [messages[0]] + (rest[len(rest) - keep_tail:] if keep_tail else [])

class SessionStore:
    """
    Conversation history per (domain, userId), backed by the 'conversations'
    collection of the clients DB.

    Document shape:
      { domain, userId, userEmail, accountRef, messages: [{role, content, timestamp}],
        createdAt, updatedAt }

    Writes are read-modify-write. Callers that load, mutate and store must
    do it inside `lock(domain, user_id)`.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        *,
        max_history: int = DEFAULT_MAX_HISTORY,
        redis: Optional[Redis] = None,
        lock_ttl: int = 60,
        collection_name: str = "conversations",
    ):
        if max_history < 1:
            raise ValueError("max_history must be >= 1")
        self.col = db[collection_name]
        self.max_history = max_history
        self.redis = redis
        self.lock_ttl = lock_ttl
        self._local_locks = KeyedLock()

    async def ensure_indexes(self) -> None:
        """Storage enforces one session per (domain, userId)."""
        await self.col.create_index(
            [("domain", ASCENDING), ("userId", ASCENDING)],
            unique=True,
            name="domain_userId_unique",
        )

    # ----- Locking -----------------------------------------------------------

    @asynccontextmanager
    async def lock(self, domain: str, user_id: str) -> AsyncIterator[None]:
        """
        Per-session mutual exclusion: asyncio lock within this process and,
        when Redis is available, a SET NX lock across worker processes.
        A Redis outage degrades to the process lock only.
        """
        key = f"session:{domain}:{user_id}"
        async with self._local_locks.hold(key):
            remote = None
            if self.redis is not None:
                remote = RedisLock(self.redis, key, ttl=self.lock_ttl)
                try:
                    acquired = await remote.acquire_wait(timeout=self.lock_ttl)
                except RedisError as e:
                    logger.warning(f"Redis session lock unavailable, using process lock only key={key}: {e}")
                    remote = None
                else:
                    if not acquired:
                        raise SessionBusyError(f"Session lock timeout for domain={domain} user_id={user_id}")
            try:
                yield
            finally:
                if remote is not None:
                    try:
                        await remote.release()
                    except RedisError as e:
                        # the lock expires on its own after lock_ttl
                        logger.warning(f"Redis session lock release failed key={key}: {e}")

    # ----- Reads / writes ----------------------------------------------------

    async def get_session(self, domain: str, user_id: str) -> Optional[ConversationSession]:
        doc = await self.col.find_one({"domain": domain, "userId": user_id}, {"_id": 0})
        if not doc:
            return None
        try:
            return ConversationSession.model_validate(doc)
        except ValidationError as e:
            raise SessionCorruptError(
                f"Stored session domain={domain} user_id={user_id} is invalid: {e.error_count()} errors"
            ) from e

    async def get_history(self, domain: str, user_id: str) -> Optional[List[Message]]:
        session = await self.get_session(domain, user_id)
        return None if session is None else session.messages

    async def set_history(
        self,
        domain: str,
        user_id: str,
        user_email: str,
        messages: List[Message],
        *,
        account_ref: Optional[str] = None,
    ) -> None:
        """Full replace of the message list (upsert)."""
        now = _utcnow()
        stamped = [m if m.timestamp else m.model_copy(update={"timestamp": now}) for m in messages]
        fields = {
            "userEmail": user_email,
            "messages": [m.model_dump() for m in stamped],
            "updatedAt": now,
        }
        if account_ref is not None:
            fields["accountRef"] = account_ref
        await self.col.update_one(
            {"domain": domain, "userId": user_id},
            {"$set": fields, "$setOnInsert": {"createdAt": now}},
            upsert=True,
        )
        logger.debug(f"Session stored domain={domain} user_id={user_id} messages={len(stamped)}")

    async def append_messages(
        self,
        domain: str,
        user_id: str,
        user_email: str,
        new_messages: List[Message],
        *,
        account_ref: Optional[str] = None,
    ) -> List[Message]:
        current = await self.get_history(domain, user_id)
        if current is None:
            logger.warning(
                f"Appending to a session without system message domain={domain} user_id={user_id}"
            )
            current = []

        now = _utcnow()
        merged = current + [m.model_copy(update={"timestamp": now}) for m in new_messages]
        pruned = prune_history(merged, self.max_history)
        if len(pruned) < len(merged):
            logger.debug(
                f"Pruned session domain={domain} user_id={user_id} from {len(merged)} to {len(pruned)}"
            )

        await self.set_history(domain, user_id, user_email, pruned, account_ref=account_ref)
        return pruned
