import asyncio
import logging
from typing import List, Optional

from ..config import settings
from ..exceptions import VectorStoreError
from ..models import RetrievedTable, TableSchema


class RAGRetriever:
    """Retrieves the catalog tables most similar to a question."""

    def __init__(self, embedder, vector_db, top_k: Optional[int] = None):
        """
        Initialize RAG retriever.

        Args:
            embedder: The same embedding gateway used to build the index
            vector_db: Vector store manager
            top_k: Default number of tables to retrieve
        """
        self.logger = logging.getLogger(__name__)
        self.embedder = embedder
        self.vector_db = vector_db
        self.top_k = settings.rag_top_k if top_k is None else top_k

        if self.top_k < 1:
            raise ValueError(f"top_k must be at least 1, got {self.top_k}")

    async def retrieve(self, question: str, k: Optional[int] = None) -> List[RetrievedTable]:
        """
        Find the ``k`` tables closest to the question.

        Args:
            question: User's natural language question
            k: Number of tables (defaults to ``top_k``, capped at the index size)

        Returns:
            Tables ranked by descending cosine similarity; empty if the index is empty
        """
        if k is None:
            k = self.top_k
        if k < 1:
            raise ValueError(f"k must be at least 1, got {k}")

        index_size = await asyncio.to_thread(self.vector_db.count)
        if index_size == 0:
            self.logger.info("Index is empty, no tables to retrieve")
            return []
        k = min(k, index_size)

        vector = await self.embedder.embed(question)
        matches = await asyncio.to_thread(self.vector_db.query, vector, k)

        results = []
        for match in matches:
            metadata = match['metadata'] or {}
            try:
                schema = TableSchema.model_validate_json(metadata['schema'])
            except (KeyError, ValueError) as e:
                raise VectorStoreError(f"Record '{match['id']}' has no usable schema metadata: {e}") from e
            results.append(RetrievedTable(
                table_name=metadata.get('table_name', match['id']),
                similarity_score=float(match['score']),
                schema=schema
            ))

        # Stable sort keeps the store's order for equal scores
        results.sort(key=lambda r: r.similarity_score, reverse=True)

        self.logger.info(
            f"Retrieved {len(results)} tables: "
            + ", ".join(f"{r.table_name} ({r.similarity_score:.3f})" for r in results)
        )
        return results
