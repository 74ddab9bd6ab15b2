import asyncio
import logging
from contextlib import contextmanager
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..config import settings
from ..exceptions import ExecutionError
from ..models import ExecutionResult


class SQLExecutor:
    """Runs validated statements against the relational database."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        timeout: Optional[int] = None,
        engine: Optional[Engine] = None
    ):
        """
        Initialize the executor.

        Args:
            database_url: SQLAlchemy URL; read-only credentials are strongly recommended
            timeout: Statement timeout in seconds where the backend supports it
            engine: Existing engine to reuse
        """
        self.logger = logging.getLogger(__name__)
        self.timeout = timeout or settings.sql_timeout
        self.engine = engine or create_engine(database_url or settings.database_url)
        self.dialect = self.engine.dialect.name

    @contextmanager
    def _execute_with_timeout(self, sql: str):
        """Execute SQL with timeout."""
        with self.engine.connect() as conn:
            # Set statement timeout if supported
            if self.dialect == "postgresql":
                conn.execute(text(f"SET statement_timeout TO {int(self.timeout * 1000)}"))

            result = conn.execute(text(sql))
            yield result

    def execute(self, sql: str) -> ExecutionResult:
        """
        Execute a statement and fetch every row.

        Args:
            sql: Statement already accepted by the SQL validator

        Returns:
            Rows as mappings and the row count
        """
        try:
            with self._execute_with_timeout(sql) as result:
                if result.returns_rows:
                    rows = [dict(row._mapping) for row in result]
                else:
                    rows = []
        except SQLAlchemyError as e:
            message = str(getattr(e, "orig", None) or e)
            self.logger.error(f"Execution failed: {message}")
            raise ExecutionError(f"Execution failed: {message}") from e

        self.logger.info(f"SQL executed successfully, returned {len(rows)} rows")
        return ExecutionResult(rows=rows, row_count=len(rows))

    async def execute_async(self, sql: str) -> ExecutionResult:
        return await asyncio.to_thread(self.execute, sql)

    def dispose(self) -> None:
        self.engine.dispose()
