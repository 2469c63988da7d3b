# shopchat/api/v1/routers/chat.py
from fastapi import APIRouter, Depends, HTTPException, Request, status
from typing import Annotated
import time
import logging

from shopchat.api.deps import Identity, chat_orchestrator, current_identity, require_admin_token
from shopchat.api.v1.schemas.chat import ChatRequestIn, ChatResponseOut, InvalidateResultOut
from shopchat.core.rate_limit import chat_rate_limit, limiter
from shopchat.domain.services.chat_svc import ChatOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chatbot", tags=["chatbot"])

IdentityDep = Annotated[Identity, Depends(current_identity)]
ChatDep = Annotated[ChatOrchestrator, Depends(chat_orchestrator)]

@router.post("/question", response_model=ChatResponseOut, response_model_exclude_none=True)
@limiter.limit(chat_rate_limit)
async def ask_question(request: Request, body: ChatRequestIn, identity: IdentityDep, chat: ChatDep):
    """
    One shopper turn for a store.
    Always answers with {message, audio_description, action}; pipeline
    failures come back as the apologetic fallback reply, never as a 5xx.
    """
    if not body.domain or not body.userMessage:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Faltan domain o userMessage")

    logger.info("Request: question domain=%s user_id=%s", body.domain, identity.user_id)
    start_time = time.perf_counter()

    reply = await chat.handle_turn(
        body.domain,
        identity.user_id,
        identity.email,
        body.userMessage,
        account_ref=identity.account_ref,
    )

    logger.info(
        "Response: question domain=%s action=%s elapsed_time=%.4fs",
        body.domain, reply.action.type, time.perf_counter() - start_time,
    )
    return reply.to_payload()

@router.post(
    "/tenants/{domain}/invalidate",
    response_model=InvalidateResultOut,
    dependencies=[Depends(require_admin_token)],
)
async def invalidate_tenant(domain: str, chat: ChatDep):
    """
    Cache invalidation hook for the store-management system: call it after
    catalog or business-config changes so the next turn reloads them.
    """
    invalidated = chat.invalidate_tenant(domain)
    logger.info("Tenant caches invalidated domain=%s result=%s", domain, invalidated)
    return {"domain": domain, "invalidated": invalidated}
