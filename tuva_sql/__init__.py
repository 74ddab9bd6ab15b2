"""
Tuva SQL: RAG-based natural-language-to-SQL assistant.

Offline processing parses the Tuva dbt schema repository into a normalized
catalog and indexes one embedding per table; online processing retrieves the
tables closest to a question, asks an LLM for a read-only SQL statement,
validates it and executes it.
"""

__version__ = "0.1.0"
__author__ = "Hive Mind Collective"
