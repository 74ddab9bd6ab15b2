import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence, Union

from ..config import settings
from ..exceptions import EmbeddingGatewayError, IndexProvisioningError
from ..models import EmbeddingRecord, TableSchema
from .schema_parser import load_catalog
from .schema_text import encode_table


class KnowledgeBaseBuilder:
    """Builds the vector index holding one embedding per catalog table."""

    def __init__(
        self,
        embedder,
        vector_db,
        batch_size: Optional[int] = None,
        batch_delay: Optional[float] = None,
        ready_timeout: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Initialize knowledge base builder.

        Args:
            embedder: Embedding gateway exposing ``embed`` and ``dimension``
            vector_db: Vector store manager
            batch_size: Tables embedded and upserted per batch
            batch_delay: Pause in seconds between batches
            ready_timeout: Seconds to wait for a new index to become queryable
            sleep: Coroutine used for the inter-batch pause
        """
        self.logger = logging.getLogger(__name__)
        self.embedder = embedder
        self.vector_db = vector_db
        self.batch_size = settings.index_batch_size if batch_size is None else batch_size
        self.batch_delay = settings.index_batch_delay if batch_delay is None else batch_delay
        self.ready_timeout = settings.index_ready_timeout if ready_timeout is None else ready_timeout
        self._sleep = sleep

        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")

    async def ensure_index(self) -> None:
        """Create the index if it does not exist and wait until it is queryable."""
        dimension = self.embedder.dimension

        if await asyncio.to_thread(self.vector_db.index_exists):
            existing = self.vector_db.dimension
            if existing is not None and existing != dimension:
                raise IndexProvisioningError(
                    f"Index '{self.vector_db.name}' has dimension {existing}, "
                    f"but the embedding model produces {dimension}"
                )
            self.logger.info(f"Index '{self.vector_db.name}' already exists")
            return

        self.logger.info(f"Creating index '{self.vector_db.name}'...")
        await asyncio.to_thread(self.vector_db.create_index, self.vector_db.name, dimension, "cosine")
        await asyncio.to_thread(self.vector_db.wait_until_ready, self.ready_timeout)

    async def build_index(self, catalog: Sequence[TableSchema]) -> int:
        """
        Embed every table of the catalog and upsert it into the index.

        Batches run one after the other with ``batch_delay`` between them;
        tables inside a batch are embedded concurrently. The first embedding
        failure aborts the run. Re-running overwrites records by table name.

        Args:
            catalog: Normalized table schemas

        Returns:
            Number of records written
        """
        await self.ensure_index()

        total = len(catalog)
        total_batches = (total + self.batch_size - 1) // self.batch_size
        self.logger.info(f"Uploading {total} schemas in {total_batches} batch(es)")

        uploaded = 0
        for batch_number, start in enumerate(range(0, total, self.batch_size), 1):
            batch = catalog[start:start + self.batch_size]
            self.logger.info(f"Processing batch {batch_number}/{total_batches}...")

            # Every request of the batch settles before the first failure is raised
            outcomes = await asyncio.gather(
                *(self._embed_table(schema) for schema in batch),
                return_exceptions=True
            )
            failures = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
            if failures:
                raise failures[0]
            records = list(outcomes)
            await asyncio.to_thread(self.vector_db.upsert, records)

            uploaded += len(records)
            self.logger.info(f"Uploaded {uploaded}/{total} vectors")

            if start + self.batch_size < total and self.batch_delay > 0:
                await self._sleep(self.batch_delay)

        self.logger.info(f"All {uploaded} schemas uploaded to '{self.vector_db.name}'")
        return uploaded

    async def build_from_catalog_file(self, catalog_path: Union[str, Path, None] = None) -> int:
        """Index the catalog persisted at ``catalog_path``."""
        catalog = load_catalog(catalog_path or settings.catalog_path)
        return await self.build_index(catalog)

    async def _embed_table(self, schema: TableSchema) -> EmbeddingRecord:
        text = encode_table(schema)
        try:
            vector = await self.embedder.embed(text)
        except EmbeddingGatewayError as e:
            self.logger.error(f"Embedding failed for {schema.table_name}: {e}")
            raise EmbeddingGatewayError(
                f"Embedding failed for table '{schema.table_name}': {e.message}",
                stage="indexing"
            ) from e
        return create_record(schema, vector, text)

    def get_table_schema(self, table_name: str) -> Optional[TableSchema]:
        """Read back the schema stored for ``table_name``."""
        records = self.vector_db.get_records([table_name])
        if not records:
            return None
        return TableSchema.model_validate_json(records[0].metadata["schema"])

    def list_tables(self) -> List[str]:
        return self.vector_db.list_tables()


def create_record(schema: TableSchema, vector: List[float], document: Optional[str] = None) -> EmbeddingRecord:
    return EmbeddingRecord.from_schema(
        schema,
        vector,
        document=encode_table(schema) if document is None else document
    )
