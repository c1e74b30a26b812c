"""Application settings loaded from environment variables via pydantic-settings.

Field names map to upper-cased environment variables (``openai_api_key``
reads ``OPENAI_API_KEY``).  A ``.env`` file in the working directory is
read as a lower-priority source for local development.

Settings are built once in :mod:`src.main` and handed to constructors;
nothing below the composition root reads the environment.
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """ragstream service settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === OpenAI ===
    # Empty key = "not configured"; providers fail fast on first use.
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint override
    openai_embedding_model: str = "text-embedding-3-small"
    openai_chat_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.3
    llm_max_tokens: int = 1024

    # === Storage ===
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection_prefix: str = "ragstream"
    records_db_path: str = "./data/records.db"

    # === Chunking ===
    max_chunk_size: int = 1000
    chunk_overlap: int = 200

    # === Retrieval ===
    retrieval_k: int = 3

    # === Ingestion ===
    ingest_worker_concurrency: int = 2
    min_content_length: int = 50
    fetch_timeout_seconds: float = 30.0
    page_load_timeout_seconds: float = 60.0
    browser_headless: bool = True

    # === Timeouts ===
    embedding_timeout_seconds: float = 30.0
    llm_timeout_seconds: float = 60.0
    store_timeout_seconds: float = 10.0

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:3000"]

    @model_validator(mode="after")
    def _check_chunk_bounds(self) -> "Settings":
        if self.max_chunk_size <= 0:
            raise ValueError("max_chunk_size must be positive")
        if not 0 <= self.chunk_overlap < self.max_chunk_size:
            raise ValueError("chunk_overlap must be >= 0 and smaller than max_chunk_size")
        if self.ingest_worker_concurrency < 1:
            raise ValueError("ingest_worker_concurrency must be at least 1")
        return self

    def is_production(self) -> bool:
        return self.app_env == "production"
