"""
Text2SQL: Main orchestrator for the Tuva natural-language-to-SQL pipeline.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence

from .config import Settings, settings as default_settings
from .core import LLMManager, VectorDBManager, create_embedding_manager
from .exceptions import (
    EmptyRetrievalError,
    InvalidQuestionError,
    SqlGenerationError,
    Text2SQLError,
)
from .models import QueryResponse, SqlCandidate, TableSchema, ValidationResult
from .offline import KnowledgeBaseBuilder
from .online import PromptBuilder, RAGRetriever, SQLExecutor, SQLValidator


class Text2SQL:
    """Main Text2SQL orchestrator."""

    def __init__(
        self,
        retriever: RAGRetriever,
        llm_manager,
        executor,
        validator: Optional[SQLValidator] = None,
        knowledge_base: Optional[KnowledgeBaseBuilder] = None
    ):
        """
        Initialize Text2SQL with explicitly constructed collaborators.

        Args:
            retriever: Top-K table retriever
            llm_manager: SQL authoring gateway exposing ``generate_sql``
            executor: Relational executor exposing ``execute_async``
            validator: Read-only SQL gate
            knowledge_base: Index builder sharing the retriever's embedder and store
        """
        self.logger = logging.getLogger(__name__)
        self.retriever = retriever
        self.llm_manager = llm_manager
        self.executor = executor
        self.validator = validator or SQLValidator()
        self.knowledge_base = knowledge_base or KnowledgeBaseBuilder(
            retriever.embedder, retriever.vector_db
        )

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "Text2SQL":
        """Build every client from configuration."""
        config = config or default_settings
        embedder = create_embedding_manager(config)
        vector_db = VectorDBManager(
            path=config.vector_db_path,
            collection_name=config.vector_db_collection_name
        )
        return cls(
            retriever=RAGRetriever(embedder, vector_db, top_k=config.rag_top_k),
            llm_manager=LLMManager(prompt_builder=PromptBuilder(dialect=config.sql_dialect)),
            executor=SQLExecutor(config.database_url, timeout=config.sql_timeout),
            validator=SQLValidator(dialect=config.sql_dialect),
            knowledge_base=KnowledgeBaseBuilder(
                embedder,
                vector_db,
                batch_size=config.index_batch_size,
                batch_delay=config.index_batch_delay,
                ready_timeout=config.index_ready_timeout
            )
        )

    async def answer(self, question: str, k: Optional[int] = None) -> QueryResponse:
        """
        Answer a natural language question with data.

        Stages run strictly in order: retrieval, SQL generation, validation,
        execution. Any failure aborts the remaining stages.

        Args:
            question: Natural language question
            k: Number of tables to retrieve (defaults to the retriever's top_k)

        Returns:
            QueryResponse with the SQL, rows and the tables that informed it

        Raises:
            Text2SQLError: subclass identifying the failing stage
        """
        if not question or not question.strip():
            raise InvalidQuestionError("Question must be a non-empty string")

        # 1. Retrieve candidate tables
        retrieved = await self.retriever.retrieve(question, k)
        if not retrieved:
            raise EmptyRetrievalError("No relevant schema found for this question")

        # 2. Generate SQL restricted to those tables
        tables = [r.schema for r in retrieved]
        candidate = SqlCandidate(statement=await self._generate_sql(question, tables))

        # 3. Gate on read-only
        sql = self.validator.ensure_read_only(candidate.statement)

        # 4. Execute
        execution = await self.executor.execute_async(sql)

        return QueryResponse(
            sql=sql,
            result=execution.rows,
            tables_used=[r.table_name for r in retrieved],
            similarity_scores=[r.similarity_score for r in retrieved],
            row_count=execution.row_count
        )

    async def _generate_sql(self, question: str, tables: Sequence[TableSchema]) -> str:
        try:
            return await self.llm_manager.generate_sql(question, tables)
        except Text2SQLError:
            raise
        except Exception as e:
            self.logger.error(f"SQL authoring gateway failed: {e}")
            raise SqlGenerationError(f"SQL generation failed: {e}") from e

    async def build_knowledge_base(self, catalog: Sequence[TableSchema]) -> int:
        """
        Index the catalog.

        Args:
            catalog: Normalized table schemas

        Returns:
            Number of records written
        """
        return await self.knowledge_base.build_index(catalog)

    def validate_sql(self, sql: str) -> ValidationResult:
        return self.validator.validate(sql)

    def get_stats(self) -> Dict[str, Any]:
        """Get system statistics."""
        embedder = self.retriever.embedder
        return {
            'knowledge_base_size': self.retriever.vector_db.count(),
            'index_name': self.retriever.vector_db.name,
            'top_k': self.retriever.top_k,
            'embedding_model': getattr(embedder, 'model_name', type(embedder).__name__),
            'embedding_dimension': getattr(embedder, 'dimension', None),
            'timestamp': datetime.now(timezone.utc).isoformat()
        }

    def close(self) -> None:
        """Release database connections."""
        dispose = getattr(self.executor, "dispose", None)
        if dispose is not None:
            dispose()
