"""
FastAPI web interface for Tuva SQL.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from ..config import settings
from ..exceptions import Text2SQLError
from ..models import QueryResponse
from ..text2sql import Text2SQL

logger = logging.getLogger(__name__)


# Pydantic models
class QueryRequest(BaseModel):
    question: str = Field(..., description="Natural language question")

    @field_validator("question")
    @classmethod
    def question_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("question must be a non-empty string")
        return value


class ValidateRequest(BaseModel):
    sql: str = Field(..., description="SQL statement to check")


class ValidateResponse(BaseModel):
    accepted: bool
    rule: Optional[str]
    reason: Optional[str]


def create_app(text2sql: Optional[Text2SQL] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        text2sql: Preconfigured orchestrator; built from settings on startup if None
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.text2sql is None
        if owned:
            app.state.text2sql = Text2SQL.from_settings(settings)
        logger.info("Text2SQL pipeline ready")
        try:
            yield
        finally:
            if owned:
                app.state.text2sql.close()

    app = FastAPI(
        title="Tuva SQL API",
        description="Natural-language-to-SQL over the Tuva healthcare schema",
        version="0.1.0",
        lifespan=lifespan
    )
    app.state.text2sql = text2sql

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Text2SQLError)
    async def pipeline_error_handler(request: Request, exc: Text2SQLError):
        if exc.status_code >= 500:
            logger.error(f"{exc.stage} failed: {exc.message}")
        else:
            logger.info(f"Request failed at {exc.stage}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        messages = [str(error.get("msg", error)) for error in exc.errors()]
        return JSONResponse(
            status_code=400,
            content={"error": "; ".join(messages) or "Invalid request", "stage": "request"}
        )

    @app.post("/query", response_model=QueryResponse)
    async def query(request: QueryRequest, http_request: Request):
        """Answer a natural language question with SQL and its results."""
        pipeline: Text2SQL = http_request.app.state.text2sql
        return await pipeline.answer(request.question)

    @app.post("/validate", response_model=ValidateResponse)
    async def validate_sql(request: ValidateRequest, http_request: Request):
        """Run the read-only SQL check without executing anything."""
        result = http_request.app.state.text2sql.validate_sql(request.sql)
        return ValidateResponse(accepted=result.accepted, rule=result.rule, reason=result.reason)

    @app.get("/stats")
    async def get_stats(http_request: Request) -> Dict[str, Any]:
        """Get system statistics."""
        return http_request.app.state.text2sql.get_stats()

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=settings.log_level)
    uvicorn.run(
        "tuva_sql.api.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug
    )
