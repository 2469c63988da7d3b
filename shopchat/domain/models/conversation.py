from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel

Role = Literal["system", "user", "assistant"]

class Message(BaseModel):
    role: Role
    content: str
    timestamp: Optional[datetime] = None  # stamped by the session store on write

    def for_completion(self) -> dict:
        """Shape expected by the chat completion API."""
        return {"role": self.role, "content": self.content}

class ConversationSession(BaseModel):
    """One document per (domain, userId) in the conversations collection."""
    domain: str
    userId: str
    userEmail: Optional[str] = None
    accountRef: Optional[str] = None
    messages: List[Message] = []
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None
