"""
Core module initialization.
"""

from .llm import LLMManager
from .embedding import EmbeddingManager, BedrockEmbeddingManager, create_embedding_manager
from .vector_db import VectorDBManager

__all__ = [
    "LLMManager",
    "EmbeddingManager",
    "BedrockEmbeddingManager",
    "create_embedding_manager",
    "VectorDBManager",
]
