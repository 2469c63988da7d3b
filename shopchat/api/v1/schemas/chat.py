# api/v1/schemas/chat.py
from pydantic import BaseModel, Field
from typing import Optional

class ChatRequestIn(BaseModel):
    # optional so missing fields map to the 400 reply, not FastAPI's 422
    domain: Optional[str] = None
    userMessage: Optional[str] = None

class ChatActionOut(BaseModel):
    type: str
    productId: Optional[str] = None
    quantity: Optional[int] = None
    url: Optional[str] = None
    price_sale: Optional[float] = None
    price_regular: Optional[float] = None
    title: Optional[str] = None
    image: Optional[str] = None
    slug: Optional[str] = None

class ChatResponseOut(BaseModel):
    message: str
    audio_description: str
    action: ChatActionOut

class InvalidateResultOut(BaseModel):
    domain: str
    invalidated: dict = Field(default_factory=dict)
