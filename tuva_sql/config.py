from typing import Literal, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # LLM Configuration
    llm_model_name: str = "llama3.1:8b"
    llm_base_url: str = "http://localhost:11434"
    llm_temperature: float = 0.0
    llm_max_tokens: int = 1024

    # Embedding Configuration
    # The local model sets the index dimension itself (1024 for bge-large);
    # embedding_dimension only applies to Bedrock, whose Titan v1 vectors are 1536 long.
    # Switching provider needs a rebuilt index.
    embedding_provider: Literal["sentence-transformers", "bedrock"] = "sentence-transformers"
    embedding_model_name: str = "BAAI/bge-large-en-v1.5"
    embedding_device: str = "cpu"
    bedrock_embedding_model: str = "amazon.titan-embed-text-v1"
    embedding_dimension: int = Field(default=1536, ge=1)
    aws_region: str = "us-east-1"

    # Vector Database Configuration
    vector_db_path: str = "./chroma_db"
    vector_db_collection_name: str = "tuva-schemas"
    index_ready_timeout: float = Field(default=60.0, gt=0)

    # Database Configuration
    database_url_override: Optional[str] = Field(default=None, validation_alias="DATABASE_URL")
    db_type: Literal["sqlite", "mysql", "postgresql"] = "sqlite"
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "readonly"
    db_password: str = ""
    db_name: str = "tuva.db"
    sql_timeout: int = 30

    # Application Configuration
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    debug: bool = False
    log_level: str = "INFO"

    # RAG Configuration
    rag_top_k: int = Field(default=5, ge=1)

    # Indexing Configuration
    index_batch_size: int = Field(default=100, ge=1)
    index_batch_delay: float = Field(default=1.0, ge=0)

    # Schema Source Configuration
    schema_repo_url: str = "https://github.com/tuva-health/tuva.git"
    schema_repo_dir: str = "./tuva-repo"
    schema_models_subdir: str = "models"
    schema_docs_subdir: str = "dbt_doc_blocks"
    catalog_path: str = "./tuva-schema.json"

    @property
    def database_url(self) -> str:
        """Construct database URL from components."""
        if self.database_url_override:
            return self.database_url_override
        if self.db_type == "sqlite":
            return f"sqlite+pysqlite:///{self.db_name}"
        elif self.db_type == "mysql":
            return f"mysql+pymysql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"
        elif self.db_type == "postgresql":
            return f"postgresql+psycopg2://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"
        else:
            raise ValueError(f"Unsupported database type: {self.db_type}")

    @property
    def sql_dialect(self) -> str:
        """sqlglot / prompt dialect name for the configured database."""
        if self.database_url_override:
            scheme = self.database_url_override.split(":", 1)[0]
            return scheme.split("+", 1)[0].replace("postgresql", "postgres")
        return "postgres" if self.db_type == "postgresql" else self.db_type


# Global settings instance
settings = Settings()
