"""
Error taxonomy for the offline and online pipelines.

Every error carries the pipeline ``stage`` that raised it and the HTTP status
code the API maps it to.
"""

from typing import Optional


class Text2SQLError(Exception):
    """Base class for pipeline failures."""

    status_code = 500
    default_stage = "pipeline"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage or self.default_stage

    def to_dict(self) -> dict:
        return {"error": self.message, "stage": self.stage}


class SchemaSourceError(Text2SQLError):
    """Cloning or pulling the schema repository failed."""

    default_stage = "schema_sync"


class SourceParseError(Text2SQLError):
    """A single schema source file could not be normalized."""

    status_code = 422
    default_stage = "normalization"


class IndexProvisioningError(Text2SQLError):
    """The vector index could not be created or never became queryable."""

    status_code = 503
    default_stage = "index_provisioning"


class EmbeddingGatewayError(Text2SQLError):
    status_code = 502
    default_stage = "embedding"


class VectorStoreError(Text2SQLError):
    status_code = 502
    default_stage = "retrieval"


class InvalidQuestionError(Text2SQLError):
    status_code = 400
    default_stage = "request"


class EmptyRetrievalError(Text2SQLError):
    """No table in the index is related to the question."""

    status_code = 404
    default_stage = "retrieval"


class SqlGenerationError(Text2SQLError):
    status_code = 502
    default_stage = "generation"


class SqlRejectedError(Text2SQLError):
    """The generated statement is not a single read-only query."""

    status_code = 400
    default_stage = "validation"

    def __init__(self, reason: str, rule: str, statement: str = ""):
        super().__init__(f"SQL rejected: {reason}")
        self.reason = reason
        self.rule = rule
        self.statement = statement

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["rule"] = self.rule
        data["sql"] = self.statement
        return data


class ExecutionError(Text2SQLError):
    """The relational engine failed to run a validated statement."""

    status_code = 500
    default_stage = "execution"
