"""Token manager for codectx - token estimation and budget-aware pruning.

Everything that goes into a completion request (system prompt, conversation
history, retrieved code, the query) is measured with a pluggable token
estimator and cut down to fit the model's context window, minus a reserve
kept free for the response. Overflow is always resolved by pruning: no
operation here raises because something is too long.
"""

import math
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from loguru import logger

from codectx.core.config import TokenBudgetConfig
from core.models import (
    ChatMessage,
    ContextChunk,
    PreparedContext,
    PrunedContext,
    PrunedHistory,
    TokenBreakdown,
    TruncationResult,
)
from interfaces.token_estimator import TokenEstimator
from providers.tokenizers import CharacterTokenEstimator, TiktokenEstimator

MessageLike = Union[ChatMessage, Mapping[str, Any]]


class TokenManager:
    """Estimates token costs and prunes prompt components to a budget."""

    def __init__(
        self,
        config: Optional[TokenBudgetConfig] = None,
        estimator: Optional[TokenEstimator] = None,
    ):
        """Initialize the token manager.

        Args:
            config: Budget constants and model limits (defaults apply when omitted)
            estimator: Token estimator; built from ``config.estimator`` when omitted
        """
        self._config = config or TokenBudgetConfig()
        self._estimator = estimator or self._create_estimator(self._config)
        self._marker_tokens = self._estimator.estimate(self._config.truncation_marker)

    @staticmethod
    def _create_estimator(config: TokenBudgetConfig) -> TokenEstimator:
        if config.estimator == "tiktoken":
            return TiktokenEstimator(
                encoding_name=config.tiktoken_encoding,
                chars_per_token=config.chars_per_token,
            )
        return CharacterTokenEstimator(config.chars_per_token)

    @property
    def config(self) -> TokenBudgetConfig:
        return self._config

    @property
    def estimator(self) -> TokenEstimator:
        return self._estimator

    # Estimation

    def estimate_tokens(self, text: Optional[str]) -> int:
        if not text:
            return 0
        return self._estimator.estimate(text)

    def estimate_messages(self, messages: Sequence[MessageLike]) -> int:
        """Token cost of a message list, including per-message overhead."""
        return sum(
            self.estimate_tokens(_content(message)) + self._config.message_overhead
            for message in messages
        )

    def model_limit(self, model: Optional[str]) -> int:
        """Context window of a model; unknown models get the 'default' limit."""
        limits = self._config.model_limits
        if model and model in limits:
            return limits[model]
        return limits["default"]

    def available_context_tokens(self, model: Optional[str], existing_messages: Sequence[MessageLike] = ()) -> int:
        """Tokens left for context after existing messages and the response reserve.

        Never less than ``min_context_tokens``.
        """
        used = self.estimate_messages(existing_messages)
        available = self.model_limit(model) - used - self._config.response_token_reserve
        return max(available, self._config.min_context_tokens)

    # Truncation

    def truncate_to_limit(self, text: str, max_tokens: int) -> TruncationResult:
        """Cut text to roughly ``max_tokens`` and append the truncation marker.

        The cut backs up to the last newline before the character budget when
        that newline lies beyond ``newline_cut_ratio`` of the budget.
        """
        original_tokens = self.estimate_tokens(text)
        if original_tokens <= max_tokens:
            return TruncationResult(
                text=text,
                original_tokens=original_tokens,
                truncated_tokens=original_tokens,
                was_truncated=False,
            )

        target_chars = max(int(max_tokens * self._estimator.chars_per_token), 0)
        truncated = text[:target_chars]

        last_newline = truncated.rfind("\n")
        if last_newline > target_chars * self._config.newline_cut_ratio:
            truncated = truncated[:last_newline]

        truncated += self._config.truncation_marker

        return TruncationResult(
            text=truncated,
            original_tokens=original_tokens,
            truncated_tokens=self.estimate_tokens(truncated),
            was_truncated=True,
        )

    def fit_to_limit(self, text: str, max_tokens: int) -> str:
        """Truncate text so that its estimate, marker included, is at most ``max_tokens``."""
        if self.estimate_tokens(text) <= max_tokens:
            return text

        marked = self.truncate_to_limit(text, max_tokens - self._marker_tokens)
        if max_tokens > self._marker_tokens and marked.truncated_tokens <= max_tokens:
            return marked.text

        # No room for the marker: plain cut, shrunk until the estimate agrees.
        cut = max(int(max_tokens * self._estimator.chars_per_token), 0)
        truncated = text[:cut]
        while truncated and self.estimate_tokens(truncated) > max_tokens:
            truncated = truncated[:int(len(truncated) * 0.9)]
        return truncated

    # Pruning

    def prune_history(
        self,
        messages: Sequence[MessageLike],
        max_tokens: int,
        keep_min_messages: Optional[int] = None,
        truncate_long_messages: bool = True,
        max_message_tokens: Optional[int] = None,
    ) -> PrunedHistory:
        """Fit conversation history into ``max_tokens``.

        First every message longer than ``max_message_tokens`` is truncated
        on its own. If the history is still over budget, messages are kept
        from the newest backwards while they fit. The newest
        ``keep_min_messages`` are kept regardless; one that does not fit is
        hard-truncated to ``forced_message_tokens`` instead of dropped.

        Returns:
            Kept messages in chronological order with before/after counts
        """
        keep_min = self._config.keep_min_messages if keep_min_messages is None else keep_min_messages
        max_message = self._config.max_message_tokens if max_message_tokens is None else max_message_tokens
        overhead = self._config.message_overhead

        history = [_as_message(message) for message in messages]
        original_count = len(history)
        original_tokens = self.estimate_messages(history)

        if original_tokens <= max_tokens and not truncate_long_messages:
            return PrunedHistory(
                messages=history,
                original_count=original_count,
                pruned_count=original_count,
                original_tokens=original_tokens,
                pruned_tokens=original_tokens,
            )

        if truncate_long_messages:
            processed = [
                message.with_content(self.truncate_to_limit(message.content, max_message).text)
                if self.estimate_tokens(message.content) > max_message else message
                for message in history
            ]
        else:
            processed = history

        current_tokens = self.estimate_messages(processed)
        if current_tokens <= max_tokens:
            return PrunedHistory(
                messages=processed,
                original_count=original_count,
                pruned_count=len(processed),
                original_tokens=original_tokens,
                pruned_tokens=current_tokens,
            )

        kept: List[ChatMessage] = []
        budget = max_tokens
        for message in reversed(processed):
            cost = self.estimate_tokens(message.content) + overhead
            if budget >= cost:
                kept.append(message)
                budget -= cost
            elif len(kept) < keep_min:
                forced_limit = self._config.forced_message_tokens
                if self.estimate_tokens(message.content) > forced_limit:
                    message = message.with_content(self.truncate_to_limit(message.content, forced_limit).text)
                kept.append(message)
                budget -= self.estimate_tokens(message.content) + overhead
            else:
                break

        kept.reverse()
        return PrunedHistory(
            messages=kept,
            original_count=original_count,
            pruned_count=len(kept),
            original_tokens=original_tokens,
            pruned_tokens=self.estimate_messages(kept),
        )

    def prune_context_chunks(self, chunks: Sequence[ContextChunk], max_tokens: int) -> PrunedContext:
        """Keep the most relevant chunks that fit into ``max_tokens``.

        Chunks arrive ranked and are never reordered. Whole chunks are taken
        greedily; the first one that does not fit is truncated into the
        remaining space when more than ``chunk_overhead +
        partial_chunk_min_tokens`` is left, and the walk stops there. The
        rendered text never exceeds ``max_tokens``.
        """
        chunks = list(chunks)
        overhead = self._config.chunk_overhead
        original_tokens = sum(self.estimate_tokens(chunk.text) for chunk in chunks)

        kept: List[ContextChunk] = []
        if max_tokens > 0 and original_tokens <= max_tokens:
            kept = list(chunks)
        elif max_tokens > 0:
            budget = max_tokens
            for chunk in chunks:
                cost = self.estimate_tokens(chunk.text) + overhead
                if budget >= cost:
                    kept.append(chunk)
                    budget -= cost
                elif budget > overhead + self._config.partial_chunk_min_tokens:
                    truncated = self.truncate_to_limit(chunk.text, budget - overhead)
                    kept.append(chunk.with_text(truncated.text))
                    break
                else:
                    break

        combined_text = self.format_chunks(kept)
        while kept and self.estimate_tokens(combined_text) > max_tokens:
            kept.pop()
            combined_text = self.format_chunks(kept)

        return PrunedContext(
            chunks=kept,
            combined_text=combined_text,
            original_chunks=len(chunks),
            kept_chunks=len(kept),
            original_tokens=original_tokens,
            pruned_tokens=self.estimate_tokens(combined_text),
        )

    @staticmethod
    def format_chunks(chunks: Sequence[ContextChunk]) -> str:
        """Render chunks as numbered, attributed blocks separated by blank lines."""
        return "\n\n".join(
            f"// [{i}] From {chunk.file_path} (relevance: {chunk.relevance_percent:.1f}%):\n{chunk.text}"
            for i, chunk in enumerate(chunks, start=1)
        )

    # Assembly

    def prepare_context_for_chat(
        self,
        model: Optional[str],
        query: str,
        system_prompt: Optional[str] = None,
        history: Sequence[MessageLike] = (),
        context_chunks: Sequence[ContextChunk] = (),
    ) -> PreparedContext:
        """Fit system prompt, history, retrieved context and query into one budget.

        The budget is the model limit minus the response reserve. System
        prompt and query are paid for first (truncated only if they alone
        overflow), the rest is split between history (``history_ratio``) and
        context. The returned breakdown always satisfies ``total <= limit``.
        """
        cfg = self._config
        model_name = model or cfg.default_model
        available = max(self.model_limit(model_name) - cfg.response_token_reserve, 0)

        system_tokens = self.estimate_tokens(system_prompt)
        query_tokens = self.estimate_tokens(query)

        allowance = max(available - cfg.formatting_overhead, 0)
        if system_tokens + query_tokens > allowance:
            logger.warning(
                f"System prompt and query ({system_tokens + query_tokens} tokens) exceed "
                f"the {allowance}-token budget for {model_name}; truncating"
            )
            system_allowance = min(system_tokens, allowance // 2)
            query_allowance = allowance - system_allowance
            if query_tokens < query_allowance:
                system_allowance = allowance - query_tokens
                query_allowance = query_tokens
            if system_prompt:
                system_prompt = self.fit_to_limit(system_prompt, system_allowance)
            query = self.fit_to_limit(query, query_allowance)
            system_tokens = self.estimate_tokens(system_prompt)
            query_tokens = self.estimate_tokens(query)

        remaining = max(available - system_tokens - query_tokens - cfg.formatting_overhead, 0)
        history_budget = math.floor(remaining * cfg.history_ratio)
        context_budget = math.floor(remaining * (1 - cfg.history_ratio))

        if cfg.reallocate_unused_budget:
            context_demand = sum(self.estimate_tokens(chunk.text) + cfg.chunk_overhead for chunk in context_chunks)
            if context_demand < context_budget:
                history_budget += context_budget - context_demand
                context_budget = context_demand

        pruned_history = self.prune_history(history, history_budget)
        if pruned_history.pruned_tokens > remaining:
            logger.debug("Retained history alone overflows the budget; dropping the minimum-retention rule")
            pruned_history = self.prune_history(history, history_budget, keep_min_messages=0)

        context_room = remaining - pruned_history.pruned_tokens
        if cfg.reallocate_unused_budget:
            context_budget = context_room
        else:
            context_budget = min(context_budget, context_room)

        pruned_context = self.prune_context_chunks(context_chunks, context_budget)

        breakdown = TokenBreakdown(
            system=system_tokens,
            history=pruned_history.pruned_tokens,
            context=pruned_context.pruned_tokens,
            query=query_tokens,
            total=system_tokens + pruned_history.pruned_tokens + pruned_context.pruned_tokens + query_tokens,
            limit=available,
        )

        logger.debug(
            f"Context prepared for {model_name}: history {pruned_history.pruned_count}/{len(history)} kept, "
            f"context {pruned_context.kept_chunks}/{pruned_context.original_chunks} kept, "
            f"breakdown={breakdown.to_dict()}"
        )

        return PreparedContext(
            system_prompt=system_prompt,
            history=pruned_history.messages,
            context=pruned_context.combined_text,
            query=query,
            token_breakdown=breakdown,
            sources=pruned_context.chunks,
        )

    def get_budget_info(self, model: Optional[str]) -> Dict[str, int]:
        """Budget constants that apply to a model."""
        limit = self.model_limit(model or self._config.default_model)
        return {
            "limit": limit,
            "response_reserve": self._config.response_token_reserve,
            "available": max(limit - self._config.response_token_reserve, 0),
        }


def _content(message: MessageLike) -> str:
    if isinstance(message, ChatMessage):
        return message.content
    return str(message.get("content") or "")


def _as_message(message: MessageLike) -> ChatMessage:
    if isinstance(message, ChatMessage):
        return message
    return ChatMessage.from_dict(dict(message))
