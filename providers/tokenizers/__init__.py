"""Token estimators package for codectx - pluggable token counting strategies."""

from .char_estimator import CharacterTokenEstimator
from .tiktoken_estimator import TiktokenEstimator

__all__ = [
    "CharacterTokenEstimator",
    "TiktokenEstimator",
]
