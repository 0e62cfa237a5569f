"""tiktoken-backed token estimator for codectx."""

from typing import Optional

import tiktoken
from loguru import logger

DEFAULT_ENCODING = "cl100k_base"


class TiktokenEstimator:
    """Count tokens with a real BPE encoding.

    The encoding is resolved from the model name when one is given; models
    tiktoken does not know fall back to ``cl100k_base``.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        encoding_name: str = DEFAULT_ENCODING,
        chars_per_token: float = 4.0,
    ):
        """Initialize the estimator.

        Args:
            model: Model whose encoding should be used
            encoding_name: Encoding used when ``model`` is unset or unknown
            chars_per_token: Characters per token assumed when a token
                budget has to be turned into a slice length
        """
        self._encoding = self._resolve_encoding(model, encoding_name)
        self._chars_per_token = chars_per_token

    @staticmethod
    def _resolve_encoding(model: Optional[str], encoding_name: str) -> "tiktoken.Encoding":
        if model:
            try:
                return tiktoken.encoding_for_model(model)
            except KeyError:
                logger.debug(f"No tiktoken encoding for model {model}, using {encoding_name}")
        return tiktoken.get_encoding(encoding_name)

    @property
    def name(self) -> str:
        return "tiktoken"

    @property
    def encoding_name(self) -> str:
        return self._encoding.name

    @property
    def chars_per_token(self) -> float:
        return self._chars_per_token

    def estimate(self, text: str) -> int:
        if not text:
            return 0
        # Special-token text in source files is counted, never rejected.
        return len(self._encoding.encode(text, disallowed_special=()))
