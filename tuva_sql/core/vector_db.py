import logging
import time
from typing import List, Dict, Any, Optional, Sequence

import chromadb
from chromadb.config import Settings as ChromaSettings

from ..config import settings
from ..exceptions import IndexProvisioningError, VectorStoreError
from ..models import EmbeddingRecord


class VectorDBManager:
    """Manages the vector index holding one embedding per table."""

    def __init__(
        self,
        client=None,
        path: Optional[str] = None,
        collection_name: Optional[str] = None
    ):
        """
        Initialize the vector database manager.

        Args:
            client: Existing Chroma client (a persistent client is created if None)
            path: Persistence directory for the default client
            collection_name: Name of the index
        """
        self.logger = logging.getLogger(__name__)
        self.path = path or settings.vector_db_path
        self.name = collection_name or settings.vector_db_collection_name
        self.client = client or self._initialize_client()
        self._collection = None

    def _initialize_client(self):
        """Initialize ChromaDB client."""
        try:
            client = chromadb.PersistentClient(
                path=self.path,
                settings=ChromaSettings(
                    anonymized_telemetry=False,
                    allow_reset=True
                )
            )
            self.logger.info(f"ChromaDB client initialized at: {self.path}")
            return client
        except Exception as e:
            self.logger.error(f"Failed to initialize ChromaDB: {e}")
            raise IndexProvisioningError(f"Failed to initialize vector store at {self.path}: {e}") from e

    @property
    def collection(self):
        if self._collection is None:
            try:
                self._collection = self.client.get_collection(self.name)
            except Exception as e:
                raise VectorStoreError(f"Vector index '{self.name}' is not available: {e}") from e
        return self._collection

    @property
    def dimension(self) -> Optional[int]:
        """Dimension declared when the index was created."""
        metadata = self.collection.metadata or {}
        value = metadata.get("dimension")
        return int(value) if value is not None else None

    def index_exists(self, name: Optional[str] = None) -> bool:
        name = name or self.name
        names = [c if isinstance(c, str) else c.name for c in self.client.list_collections()]
        return name in names

    def create_index(self, name: Optional[str] = None, dimension: int = 1536, metric: str = "cosine") -> None:
        """
        Create the index with a fixed dimension and similarity metric.

        Args:
            name: Index name (defaults to the configured collection)
            dimension: Length of every stored vector
            metric: Chroma HNSW space, ``cosine`` for this system
        """
        name = name or self.name
        try:
            collection = self.client.create_collection(
                name=name,
                metadata={
                    "hnsw:space": metric,
                    "dimension": dimension,
                    "created_by": "tuva-sql"
                }
            )
            if name == self.name:
                self._collection = collection
            self.logger.info(f"Created index '{name}' (dimension={dimension}, metric={metric})")
        except Exception as e:
            self.logger.error(f"Failed to create index '{name}': {e}")
            raise IndexProvisioningError(f"Failed to create index '{name}': {e}") from e

    def wait_until_ready(self, timeout: float = 60.0, poll_interval: float = 1.0) -> None:
        """Block until the index answers queries or ``timeout`` elapses."""
        deadline = time.monotonic() + timeout
        last_error = None
        while True:
            try:
                self._collection = self.client.get_collection(self.name)
                self._collection.count()
                self.logger.info(f"Index '{self.name}' is ready")
                return
            except Exception as e:
                last_error = e
                self.logger.debug(f"Index '{self.name}' not ready yet: {e}")
            if time.monotonic() >= deadline:
                raise IndexProvisioningError(
                    f"Index '{self.name}' not queryable after {timeout}s: {last_error}"
                )
            time.sleep(poll_interval)

    def upsert(self, records: Sequence[EmbeddingRecord]) -> None:
        """
        Write a batch of records in one call, replacing records with the same id.

        Args:
            records: Records to upsert
        """
        if not records:
            return
        expected = self.dimension
        if expected is not None:
            for record in records:
                if len(record.vector) != expected:
                    raise VectorStoreError(
                        f"Vector for '{record.id}' has dimension {len(record.vector)}, index expects {expected}",
                        stage="indexing"
                    )
        try:
            self.collection.upsert(
                ids=[record.id for record in records],
                embeddings=[record.vector for record in records],
                metadatas=[record.metadata for record in records],
                documents=[record.document for record in records]
            )
            self.logger.info(f"Upserted {len(records)} records into '{self.name}'")
        except Exception as e:
            self.logger.error(f"Error upserting records: {e}")
            raise VectorStoreError(f"Upsert into '{self.name}' failed: {e}", stage="indexing") from e

    def query(self, vector: List[float], k: int) -> List[Dict[str, Any]]:
        """
        Return the ``k`` nearest records to ``vector``.

        Args:
            vector: Query embedding
            k: Number of neighbors

        Returns:
            List of dicts with ``id``, ``score`` (cosine similarity) and ``metadata``
        """
        try:
            results = self.collection.query(
                query_embeddings=[vector],
                n_results=k,
                include=["metadatas", "distances"]
            )
        except VectorStoreError:
            raise
        except Exception as e:
            self.logger.error(f"Error querying index: {e}")
            raise VectorStoreError(f"Query against '{self.name}' failed: {e}") from e

        formatted_results = []
        for i in range(len(results['ids'][0])):
            formatted_results.append({
                'id': results['ids'][0][i],
                'score': 1.0 - float(results['distances'][0][i]),
                'metadata': results['metadatas'][0][i]
            })
        return formatted_results

    def get_records(self, ids: Optional[List[str]] = None) -> List[EmbeddingRecord]:
        """Fetch stored records, all of them when ``ids`` is None."""
        try:
            results = self.collection.get(
                ids=ids,
                include=["embeddings", "metadatas", "documents"]
            )
        except Exception as e:
            raise VectorStoreError(f"Fetching records from '{self.name}' failed: {e}") from e

        records = []
        for i, record_id in enumerate(results['ids']):
            records.append(EmbeddingRecord(
                id=record_id,
                vector=[float(v) for v in results['embeddings'][i]],
                metadata=dict(results['metadatas'][i]),
                document=results['documents'][i] or ""
            ))
        return records

    def list_tables(self) -> List[str]:
        results = self.collection.get(include=[])
        return sorted(results['ids'])

    def count(self) -> int:
        """Number of records in the index, 0 when the index does not exist."""
        if not self.index_exists():
            return 0
        try:
            return self.collection.count()
        except Exception as e:
            raise VectorStoreError(f"Counting records in '{self.name}' failed: {e}") from e

    def delete_index(self) -> None:
        """Drop the index entirely."""
        if self.index_exists():
            self.client.delete_collection(self.name)
            self._collection = None
            self.logger.info(f"Deleted index '{self.name}'")
