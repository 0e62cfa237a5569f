"""Character-count token estimator for codectx."""

import math


class CharacterTokenEstimator:
    """Estimate tokens as ``ceil(len(text) / chars_per_token)``.

    A deliberately rough heuristic: it needs no model files and is stable
    across providers, which is all budget pruning needs.
    """

    def __init__(self, chars_per_token: int = 4):
        if chars_per_token < 1:
            raise ValueError("chars_per_token must be at least 1")
        self._chars_per_token = chars_per_token

    @property
    def name(self) -> str:
        return "chars"

    @property
    def chars_per_token(self) -> float:
        return float(self._chars_per_token)

    def estimate(self, text: str) -> int:
        if not text:
            return 0
        return math.ceil(len(text) / self._chars_per_token)
