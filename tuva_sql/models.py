"""
Data model shared by the offline and online pipelines.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Column(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: str = "TEXT"
    description: str = ""


class TableSchema(BaseModel):
    """Canonical description of one table in the catalog."""

    model_config = ConfigDict(frozen=True)

    table_name: str = Field(min_length=1)
    description: str = ""
    columns: Tuple[Column, ...] = ()
    full_description: str = ""

    @property
    def column_names(self) -> List[str]:
        return [col.name for col in self.columns]


class CatalogFile(BaseModel):
    """Persisted catalog document written by the normalizer."""

    timestamp: str
    total_tables: int
    schemas: List[TableSchema]


@dataclass
class EmbeddingRecord:
    """One vector store entry; the id is the table name."""

    id: str
    vector: List[float]
    metadata: Dict[str, Any]
    document: str = ""

    @classmethod
    def from_schema(cls, schema: TableSchema, vector: List[float], document: str = "") -> "EmbeddingRecord":
        return cls(
            id=schema.table_name,
            vector=list(vector),
            metadata={
                "table_name": schema.table_name,
                "description": schema.description,
                "columns": json.dumps([col.model_dump() for col in schema.columns]),
                "schema": schema.model_dump_json(),
            },
            document=document,
        )


@dataclass(frozen=True)
class RetrievedTable:
    table_name: str
    similarity_score: float
    schema: TableSchema


@dataclass(frozen=True)
class SqlCandidate:
    statement: str


@dataclass(frozen=True)
class ValidationResult:
    accepted: bool
    statement: str
    rule: Optional[str] = None
    reason: Optional[str] = None


@dataclass
class ExecutionResult:
    rows: List[Dict[str, Any]] = field(default_factory=list)
    row_count: int = 0


class QueryResponse(BaseModel):
    """Final answer returned to the caller."""

    model_config = ConfigDict(populate_by_name=True)

    sql: str
    result: List[Dict[str, Any]]
    tables_used: List[str]
    similarity_scores: List[float]
    row_count: int = Field(alias="rowCount")
