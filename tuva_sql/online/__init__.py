"""
Online processing module initialization.
"""

from .rag_retriever import RAGRetriever
from .prompt_builder import PromptBuilder
from .sql_validator import SQLValidator
from .sql_executor import SQLExecutor

__all__ = ["RAGRetriever", "PromptBuilder", "SQLValidator", "SQLExecutor"]
