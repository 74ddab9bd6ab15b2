import pytest

from tuva_sql.exceptions import (
    EmbeddingGatewayError,
    EmptyRetrievalError,
    ExecutionError,
    InvalidQuestionError,
    SqlGenerationError,
    SqlRejectedError,
)
from tuva_sql.offline.knowledge_base import KnowledgeBaseBuilder
from tuva_sql.online.rag_retriever import RAGRetriever
from tuva_sql.online.sql_executor import SQLExecutor
from tuva_sql.online.sql_validator import SQLValidator
from tuva_sql.text2sql import Text2SQL

from conftest import FakeEmbedder, FakeLLM


class RecordingExecutor:
    def __init__(self, inner=None):
        self.inner = inner
        self.calls = []

    async def execute_async(self, sql):
        self.calls.append(sql)
        return await self.inner.execute_async(sql)

    def dispose(self):
        if self.inner is not None:
            self.inner.dispose()


def _pipeline(embedder, vector_db, llm, executor):
    return Text2SQL(
        retriever=RAGRetriever(embedder, vector_db, top_k=5),
        llm_manager=llm,
        executor=executor,
        validator=SQLValidator(dialect="sqlite"),
        knowledge_base=KnowledgeBaseBuilder(embedder, vector_db, batch_delay=0),
    )


@pytest.mark.asyncio
async def test_california_patients(fake_embedder, fake_vector_db, patient_schema, patient_db_url):
    llm = FakeLLM("SELECT id, state FROM core__patient WHERE state = 'CA'")
    executor = RecordingExecutor(SQLExecutor(patient_db_url))
    pipeline = _pipeline(fake_embedder, fake_vector_db, llm, executor)
    await pipeline.build_knowledge_base([patient_schema])

    response = await pipeline.answer("How many patients from California?")

    assert response.tables_used == ["core__patient"]
    assert len(response.similarity_scores) == 1
    assert response.sql == "SELECT id, state FROM core__patient WHERE state = 'CA'"
    assert response.row_count == 2
    assert {row["id"] for row in response.result} == {"p1", "p2"}
    assert llm.calls == [("How many patients from California?", ["core__patient"])]
    assert response.model_dump(by_alias=True)["rowCount"] == 2
    pipeline.close()


@pytest.mark.asyncio
async def test_empty_catalog_never_calls_authoring_gateway(fake_embedder, fake_vector_db):
    llm = FakeLLM("SELECT 1")
    executor = RecordingExecutor()
    pipeline = _pipeline(fake_embedder, fake_vector_db, llm, executor)
    await pipeline.build_knowledge_base([])

    with pytest.raises(EmptyRetrievalError, match="No relevant schema found"):
        await pipeline.answer("How many patients from California?")

    assert llm.calls == []
    assert executor.calls == []


@pytest.mark.asyncio
async def test_drop_is_rejected_before_execution(fake_embedder, fake_vector_db, patient_schema):
    llm = FakeLLM("DROP TABLE core__patient;")
    executor = RecordingExecutor()
    pipeline = _pipeline(fake_embedder, fake_vector_db, llm, executor)
    await pipeline.build_knowledge_base([patient_schema])

    with pytest.raises(SqlRejectedError) as exc_info:
        await pipeline.answer("Remove all patients")

    assert "DROP" in exc_info.value.reason
    assert exc_info.value.statement == "DROP TABLE core__patient;"
    assert executor.calls == []


@pytest.mark.asyncio
async def test_blank_question(fake_embedder, fake_vector_db):
    pipeline = _pipeline(fake_embedder, fake_vector_db, FakeLLM("SELECT 1"), RecordingExecutor())

    with pytest.raises(InvalidQuestionError):
        await pipeline.answer("   ")


@pytest.mark.asyncio
async def test_authoring_failure_names_the_stage(fake_embedder, fake_vector_db, patient_schema):
    class BrokenLLM:
        async def generate_sql(self, question, tables):
            raise TimeoutError("model timed out")

    executor = RecordingExecutor()
    pipeline = _pipeline(fake_embedder, fake_vector_db, BrokenLLM(), executor)
    await pipeline.build_knowledge_base([patient_schema])

    with pytest.raises(SqlGenerationError) as exc_info:
        await pipeline.answer("How many patients?")

    assert exc_info.value.stage == "generation"
    assert executor.calls == []


@pytest.mark.asyncio
async def test_execution_error_propagates(fake_embedder, fake_vector_db, patient_schema, patient_db_url):
    llm = FakeLLM("SELECT nope FROM core__patient")
    pipeline = _pipeline(fake_embedder, fake_vector_db, llm, RecordingExecutor(SQLExecutor(patient_db_url)))
    await pipeline.build_knowledge_base([patient_schema])

    with pytest.raises(ExecutionError, match="no such column"):
        await pipeline.answer("How many patients?")
    pipeline.close()


def test_stats(fake_embedder, fake_vector_db):
    pipeline = _pipeline(fake_embedder, fake_vector_db, FakeLLM("SELECT 1"), RecordingExecutor())

    stats = pipeline.get_stats()

    assert stats["knowledge_base_size"] == 0
    assert stats["index_name"] == "tuva-schemas"
    assert stats["embedding_dimension"] == fake_embedder.dimension


@pytest.mark.asyncio
async def test_question_embedding_failure_aborts_before_authoring(fake_vector_db, patient_schema):
    embedder = FakeEmbedder(fail_on="California")
    llm = FakeLLM("SELECT 1")
    executor = RecordingExecutor()
    pipeline = _pipeline(embedder, fake_vector_db, llm, executor)
    await pipeline.build_knowledge_base([patient_schema])

    with pytest.raises(EmbeddingGatewayError) as exc_info:
        await pipeline.answer("How many patients from California?")

    assert exc_info.value.stage == "embedding"
    assert llm.calls == []
    assert executor.calls == []
