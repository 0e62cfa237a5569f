"""Context assembler for codectx - turns a chat turn into a bounded prompt payload."""

from typing import List, Optional, Sequence

from loguru import logger

from codectx.chunker import DEFAULT_WINDOW_SIZE
from codectx.core.config import RetrievalConfig
from core.exceptions import ProviderError
from core.models import ContextChunk, PreparedContext
from core.types import FilePath
from .search_service import SearchService
from .token_manager import MessageLike, TokenManager


class ContextAssembler:
    """Composes retrieval and token budgeting into a single entry point.

    The query is embedded and searched, the ranked chunks and the
    conversation history are pruned to the model's budget, and the result
    is handed back ready for the completion provider.
    """

    def __init__(
        self,
        search_service: SearchService,
        token_manager: TokenManager,
        config: Optional[RetrievalConfig] = None,
    ):
        self._search_service = search_service
        self._token_manager = token_manager
        self._config = config or RetrievalConfig()

    @property
    def config(self) -> RetrievalConfig:
        return self._config

    @property
    def token_manager(self) -> TokenManager:
        return self._token_manager

    async def retrieve(
        self,
        query: str,
        k: Optional[int] = None,
        filter_file_path: Optional[str] = None,
    ) -> List[ContextChunk]:
        """Search for context, degrading to no context if the provider fails."""
        try:
            return await self._search_service.search(
                query,
                k=self._config.top_k if k is None else k,
                filter_file_path=filter_file_path,
            )
        except ProviderError as e:
            logger.error(f"Context retrieval failed, answering without code context: {e}")
            return []

    async def assemble(
        self,
        query: str,
        model: Optional[str] = None,
        system_prompt: Optional[str] = None,
        history: Sequence[MessageLike] = (),
        k: Optional[int] = None,
        filter_file_path: Optional[str] = None,
    ) -> PreparedContext:
        """Build a budget-compliant payload for one chat turn.

        Args:
            query: The user's question
            model: Target completion model (selects the token limit)
            system_prompt: Overrides the configured system prompt
            history: Prior turns, oldest first
            k: Number of chunks to retrieve
            filter_file_path: Restrict retrieval to one file

        Returns:
            Pruned system prompt, history, rendered context and query, plus
            the token breakdown
        """
        chunks = await self.retrieve(query, k=k, filter_file_path=filter_file_path)

        prepared = self._token_manager.prepare_context_for_chat(
            model=model,
            query=query,
            system_prompt=system_prompt if system_prompt is not None else self._config.system_prompt,
            history=history,
            context_chunks=chunks,
        )

        breakdown = prepared.token_breakdown
        logger.info(
            f"Assembled context: {len(prepared.sources)}/{len(chunks)} chunks, "
            f"{len(prepared.history)}/{len(history)} messages, "
            f"{breakdown.total}/{breakdown.limit} tokens"
        )
        return prepared

    async def assemble_for_file(
        self,
        query: str,
        file_path: str,
        content: str,
        model: Optional[str] = None,
        system_prompt: Optional[str] = None,
        history: Sequence[MessageLike] = (),
        k: Optional[int] = None,
    ) -> PreparedContext:
        """Build a payload for a question about one open file.

        The file's current content is ranked window by window without the
        vector index. If ranking fails the leading characters of the file
        are sent instead.

        Args:
            query: The user's question
            file_path: Logical identifier of the file
            content: Current file content
            model: Target completion model (selects the token limit)
            system_prompt: Overrides the configured file system prompt
            history: Prior turns, oldest first
            k: Number of windows to keep
        """
        if system_prompt is None:
            system_prompt = self._config.file_system_prompt.replace("{file_path}", file_path)

        try:
            chunks = await self._search_service.search_content(
                query,
                file_path,
                content,
                k=self._config.file_top_k if k is None else k,
                window_size=self._config.file_chunk_size or DEFAULT_WINDOW_SIZE,
            )
        except ProviderError as e:
            logger.error(f"Ranking {file_path} failed, sending the start of the file instead: {e}")
            head = content[:self._config.file_fallback_chars]
            chunks = [ContextChunk(text=head, file_path=FilePath(file_path), score=0.0)] if head.strip() else []

        prepared = self._token_manager.prepare_context_for_chat(
            model=model,
            query=query,
            system_prompt=system_prompt,
            history=history,
            context_chunks=chunks,
        )

        logger.info(
            f"Assembled file context for {file_path}: {len(prepared.sources)}/{len(chunks)} windows, "
            f"{prepared.token_breakdown.total}/{prepared.token_breakdown.limit} tokens"
        )
        return prepared

    async def assemble_messages(
        self,
        query: str,
        model: Optional[str] = None,
        history: Sequence[MessageLike] = (),
        **kwargs,
    ) -> List[dict]:
        """Assemble and render straight to a provider-ready message list."""
        prepared = await self.assemble(query, model=model, history=history, **kwargs)
        return prepared.to_messages()

