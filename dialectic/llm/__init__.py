"""LLM module."""

from .content import ContentGenerator, IContentGenerator, extract_json
from .llm_provider import ILLMProvider, LLMProvider

__all__ = [
    "ContentGenerator",
    "IContentGenerator",
    "ILLMProvider",
    "LLMProvider",
    "extract_json",
]
