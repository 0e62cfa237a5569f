"""TokenEstimator protocol for codectx - pluggable token counting strategies."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class TokenEstimator(Protocol):
    """Strategy for estimating how many tokens a text costs.

    Pruning logic only ever talks to this protocol, so a real tokenizer can
    replace the default character heuristic without touching it.
    """

    @property
    def name(self) -> str:
        """Estimator name (e.g., 'chars', 'tiktoken')."""
        ...

    @property
    def chars_per_token(self) -> float:
        """Average characters per token, used to turn a token budget into a slice length."""
        ...

    def estimate(self, text: str) -> int:
        """Estimate the token count of ``text``. Empty text costs 0."""
        ...
