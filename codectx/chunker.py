"""Chunker module for codectx - splits file content into fixed line windows."""

import hashlib
from typing import List, Sequence

from loguru import logger

from core.exceptions import ValidationError
from core.models import Chunk
from core.types import ChunkHash, FilePath

DEFAULT_WINDOW_SIZE = 50


def chunk_by_lines(text: str, window_size: int = DEFAULT_WINDOW_SIZE) -> List[str]:
    """Split text into consecutive windows of ``window_size`` lines.

    Lines are separated by "\\n" only; a "\\r" stays part of its line. The
    last window may be shorter. Joining the result with "\\n" gives back the
    original text exactly, and the empty string yields ``[""]``.

    Args:
        text: File content
        window_size: Lines per chunk

    Returns:
        Ordered list of chunk texts

    Raises:
        ValidationError: If window_size is less than 1
    """
    if window_size < 1:
        raise ValidationError("window_size", window_size, "Window size must be at least 1")

    lines = text.split("\n")
    return [
        "\n".join(lines[i:i + window_size])
        for i in range(0, len(lines), window_size)
    ]


def hash_chunk(text: str) -> ChunkHash:
    """Content digest of a chunk: hex MD5 of its UTF-8 bytes.

    Used only for change detection, never for security.
    """
    return ChunkHash(hashlib.md5(text.encode("utf-8")).hexdigest())


def hash_chunks(chunks: Sequence[str]) -> List[ChunkHash]:
    return [hash_chunk(chunk) for chunk in chunks]


class LineChunker:
    """Chunker producing Chunk records from fixed-size line windows."""

    def __init__(self, window_size: int = DEFAULT_WINDOW_SIZE):
        """Initialize the chunker.

        Args:
            window_size: Lines per chunk
        """
        if window_size < 1:
            raise ValidationError("window_size", window_size, "Window size must be at least 1")
        self.window_size = window_size

    def split(self, text: str) -> List[str]:
        return chunk_by_lines(text, self.window_size)

    def chunk_file(self, file_path: str, content: str) -> List[Chunk]:
        """Convert file content into hashed Chunk records.

        Args:
            file_path: Logical identifier of the file
            content: Current file content

        Returns:
            Chunks in file order, each carrying its start line
        """
        texts = self.split(content)
        chunks = [
            Chunk(
                text=text,
                file_path=FilePath(file_path),
                chunk_index=index,
                hash=hash_chunk(text),
                start_line=index * self.window_size + 1,
            )
            for index, text in enumerate(texts)
        ]
        logger.debug(f"Created {len(chunks)} chunks from {file_path}")
        return chunks
