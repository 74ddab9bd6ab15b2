"""
Offline processing module initialization.
"""

from .repo_sync import SchemaRepository
from .schema_parser import SchemaParser, load_catalog, normalize, save_catalog
from .schema_text import encode_table
from .knowledge_base import KnowledgeBaseBuilder

__all__ = [
    "SchemaRepository",
    "SchemaParser",
    "load_catalog",
    "normalize",
    "save_catalog",
    "encode_table",
    "KnowledgeBaseBuilder",
]
