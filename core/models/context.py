"""codectx Context Models - Chat messages and token budget value objects.

All of these are ephemeral, per-request values. None of them is persisted;
they are recomputed on every chat turn.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..types import MessageRole
from .chunk import ContextChunk


@dataclass(frozen=True)
class ChatMessage:
    """One turn of conversation history."""

    role: MessageRole
    content: str

    def with_content(self, content: str) -> "ChatMessage":
        """Return a copy of this message carrying different content."""
        return ChatMessage(role=self.role, content=content)

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "ChatMessage":
        return cls(role=MessageRole.ASSISTANT, content=content)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatMessage":
        """Create a message from a ``{"role": ..., "content": ...}`` mapping."""
        role = data.get("role", "user")
        if not isinstance(role, MessageRole):
            role = MessageRole.from_string(str(role))
        return cls(role=role, content=str(data.get("content") or ""))

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass(frozen=True)
class TokenBreakdown:
    """Estimated token usage of an assembled prompt."""

    system: int
    history: int
    context: int
    query: int
    total: int
    limit: int

    @property
    def remaining(self) -> int:
        return self.limit - self.total

    def to_dict(self) -> Dict[str, int]:
        return {
            "system": self.system,
            "history": self.history,
            "context": self.context,
            "query": self.query,
            "total": self.total,
            "limit": self.limit,
        }


@dataclass(frozen=True)
class TruncationResult:
    """Result of cutting a text down to a token limit."""

    text: str
    original_tokens: int
    truncated_tokens: int
    was_truncated: bool


@dataclass(frozen=True)
class PrunedHistory:
    """Conversation history after budget pruning."""

    messages: List[ChatMessage]
    original_count: int
    pruned_count: int
    original_tokens: int
    pruned_tokens: int

    @property
    def dropped_count(self) -> int:
        return self.original_count - self.pruned_count


@dataclass(frozen=True)
class PrunedContext:
    """Retrieved chunks after budget pruning, plus their rendered form."""

    chunks: List[ContextChunk]
    combined_text: str
    original_chunks: int
    kept_chunks: int
    original_tokens: int
    pruned_tokens: int


@dataclass(frozen=True)
class PreparedContext:
    """Budget-compliant payload ready for the completion provider."""

    system_prompt: Optional[str]
    history: List[ChatMessage]
    context: str
    query: str
    token_breakdown: TokenBreakdown
    sources: List[ContextChunk] = field(default_factory=list)

    def to_messages(self, context_header: str = "Relevant code context:") -> List[Dict[str, str]]:
        """Render the payload as a provider-ready message list.

        The system prompt (if any) comes first, then history in chronological
        order, then the final user turn carrying the retrieved context ahead
        of the query.
        """
        messages: List[Dict[str, str]] = []
        if self.system_prompt:
            messages.append({"role": MessageRole.SYSTEM.value, "content": self.system_prompt})

        messages.extend(message.to_dict() for message in self.history)

        if self.context:
            content = f"{context_header}\n\n{self.context}\n\n{self.query}"
        else:
            content = self.query
        messages.append({"role": MessageRole.USER.value, "content": content})
        return messages
