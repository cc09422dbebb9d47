"""Learning module."""

from .registry import COACHING_BENCHMARK, ILearningRegistry, LearningRegistry

__all__ = ["COACHING_BENCHMARK", "ILearningRegistry", "LearningRegistry"]
