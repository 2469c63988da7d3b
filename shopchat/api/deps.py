# shopchat/api/deps.py
from dataclasses import dataclass
from typing import Optional
import secrets

from fastapi import Depends, Header, HTTPException, Request, status
from shopchat.core.config import Settings, get_settings
from shopchat.domain.services.chat_svc import ChatOrchestrator


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: str
    account_ref: Optional[str] = None


async def current_identity(
    x_user_id: Optional[str] = Header(default=None),
    x_user_email: Optional[str] = Header(default=None),
    x_account_ref: Optional[str] = Header(default=None),
) -> Identity:
    """
    Identity verified by the upstream auth gateway, forwarded as headers.
    """
    if not x_user_id or not x_user_email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Falta información del usuario en el token",
        )
    return Identity(user_id=x_user_id, email=x_user_email, account_ref=x_account_ref)


async def require_admin_token(
    x_admin_token: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Operator-only endpoints; disabled while ADMIN_TOKEN is unset."""
    if not settings.ADMIN_TOKEN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Operación deshabilitada")
    if not x_admin_token or not secrets.compare_digest(x_admin_token, settings.ADMIN_TOKEN):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token de administración inválido")


def chat_orchestrator(request: Request) -> ChatOrchestrator:
    return request.app.state.chat
