import asyncio
import hashlib
import re
from typing import Dict, List, Optional

import numpy as np
import pytest
from sqlalchemy import create_engine, text

from tuva_sql.exceptions import EmbeddingGatewayError
from tuva_sql.models import Column, EmbeddingRecord, TableSchema


class FakeEmbedder:
    """Deterministic bag-of-words embedder."""

    def __init__(self, dimension: int = 32, fail_on: Optional[str] = None):
        self.dimension = dimension
        self.model_name = "fake-embedder"
        self.fail_on = fail_on
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def vector(self, text_value: str) -> List[float]:
        vec = np.zeros(self.dimension)
        vec[-1] = 0.1
        for word in re.findall(r"[a-z]+", text_value.lower()):
            bucket = int(hashlib.md5(word.encode()).hexdigest(), 16) % (self.dimension - 1)
            vec[bucket] += 1.0
        return (vec / np.linalg.norm(vec)).tolist()

    async def embed(self, text_value: str) -> List[float]:
        self.calls.append(text_value)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if self.fail_on and self.fail_on in text_value:
                raise EmbeddingGatewayError(f"throttled while embedding {self.fail_on}")
            return self.vector(text_value)
        finally:
            self.in_flight -= 1


class FakeVectorDB:
    """In-memory stand-in for the Chroma index."""

    def __init__(self, name: str = "tuva-schemas"):
        self.name = name
        self.dimension: Optional[int] = None
        self.metric: Optional[str] = None
        self.records: Dict[str, EmbeddingRecord] = {}
        self.upsert_batches: List[List[str]] = []
        self.created = False

    def index_exists(self, name: Optional[str] = None) -> bool:
        return self.created

    def create_index(self, name=None, dimension=1536, metric="cosine") -> None:
        self.created = True
        self.dimension = dimension
        self.metric = metric

    def wait_until_ready(self, timeout: float = 60.0, poll_interval: float = 1.0) -> None:
        assert self.created

    def upsert(self, records) -> None:
        self.upsert_batches.append([r.id for r in records])
        for record in records:
            self.records[record.id] = record

    def count(self) -> int:
        return len(self.records)

    def query(self, vector, k):
        query_vec = np.asarray(vector)
        scored = []
        for record in self.records.values():
            vec = np.asarray(record.vector)
            score = float(vec @ query_vec / (np.linalg.norm(vec) * np.linalg.norm(query_vec)))
            scored.append({"id": record.id, "score": score, "metadata": dict(record.metadata)})
        scored.sort(key=lambda r: r["score"], reverse=True)
        return scored[:k]

    def get_records(self, ids=None):
        if ids is None:
            return list(self.records.values())
        return [self.records[i] for i in ids if i in self.records]

    def list_tables(self):
        return sorted(self.records)


class FakeLLM:
    """SQL authoring gateway returning a canned statement."""

    def __init__(self, sql: str):
        self.sql = sql
        self.calls = []

    async def generate_sql(self, question, tables):
        self.calls.append((question, [t.table_name for t in tables]))
        return self.sql


@pytest.fixture
def patient_schema() -> TableSchema:
    return TableSchema(
        table_name="core__patient",
        description="One row per patient with demographics",
        columns=(
            Column(name="id", type="TEXT", description="Patient identifier"),
            Column(name="state", type="TEXT", description="State of residence"),
        ),
    )


@pytest.fixture
def healthcare_catalog(patient_schema) -> List[TableSchema]:
    return [
        patient_schema,
        TableSchema(
            table_name="core__encounter",
            description="Inpatient and outpatient encounters",
            columns=(
                Column(name="encounter_id", type="TEXT"),
                Column(name="encounter_type", type="TEXT", description="Encounter type"),
                Column(name="admit_date", type="DATE"),
            ),
        ),
        TableSchema(
            table_name="core__pharmacy_claim",
            description="Pharmacy claims with drug codes and paid amounts",
            columns=(
                Column(name="claim_id", type="TEXT"),
                Column(name="ndc_code", type="TEXT", description="National drug code"),
                Column(name="paid_amount", type="NUMERIC"),
            ),
        ),
    ]


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def fake_vector_db() -> FakeVectorDB:
    return FakeVectorDB()


@pytest.fixture
def patient_db_url(tmp_path) -> str:
    url = f"sqlite+pysqlite:///{tmp_path / 'tuva.db'}"
    engine = create_engine(url)
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE core__patient (id TEXT PRIMARY KEY, state TEXT)"))
        conn.execute(text(
            "INSERT INTO core__patient (id, state) VALUES "
            "('p1', 'CA'), ('p2', 'CA'), ('p3', 'NY')"
        ))
    engine.dispose()
    return url
