# shopchat/domain/errors.py
"""
Failures of a single chat turn.

Every error here is recovered by the orchestrator: the shopper always gets
an assistant-shaped reply, and no partial turn is written to the session.
"""


class ChatPipelineError(Exception):
    """Base class for per-turn failures handled by ChatOrchestrator."""


class ConfigFetchError(ChatPipelineError):
    """Catalog or business-config collaborator unreachable / non-2xx."""


class EmbeddingCallError(ChatPipelineError):
    """Embedding service failed or returned unusable vectors."""


class CompletionCallError(ChatPipelineError):
    """Network, auth or rate-limit failure from the completion service."""


class ModelInvalidJSONError(ChatPipelineError):
    """The completion payload could not be decoded into a reply object."""

    def __init__(self, raw: str, reason: str):
        super().__init__(f"Invalid model JSON: {reason}")
        self.raw = raw
        self.reason = reason


class SessionBusyError(ChatPipelineError):
    """Another worker holds the session lock for longer than allowed."""


class SessionCorruptError(ChatPipelineError):
    """A stored conversation document does not match the session schema."""
