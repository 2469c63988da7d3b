# shopchat/domain/services/completion_svc.py

from __future__ import annotations
from typing import List
import logging
from time import monotonic as _now

from openai import AsyncOpenAI, OpenAIError

from shopchat.domain.errors import CompletionCallError

logger = logging.getLogger(__name__)


class CompletionClient:
    """Chat completion in JSON mode; returns the raw text payload."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        *,
        temperature: float = 0.2,
        max_tokens: int = 500,
        timeout_s: int = 30,
    ):
        self.client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout_s = timeout_s

    async def complete(self, messages: List[dict]) -> str:
        t0 = _now()
        try:
            resp = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                timeout=self.timeout_s,
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            raise CompletionCallError(f"Completion request failed model={self.model}: {e}") from e
        dt = _now() - t0

        u = getattr(resp, "usage", None)
        logger.info(
            f"LLM call model={getattr(resp, 'model', self.model)} duration={dt:.3f}s "
            f"messages={len(messages)} tokens(prompt={getattr(u, 'prompt_tokens', None)}, "
            f"completion={getattr(u, 'completion_tokens', None)})"
        )
        if not resp.choices:
            raise CompletionCallError(f"Completion returned no choices model={self.model}")
        return resp.choices[0].message.content or ""
