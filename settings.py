"""Environment-driven configuration for the tab assistant backend.

Every credential is optional. A missing key degrades the matching provider
(synthetic embeddings, templated answers, local-only vector storage) instead
of refusing to start.
"""

import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, model_validator

PROJECT_ROOT = Path(__file__).parent


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_optional(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


class Settings(BaseModel):
    # --- Embeddings ---
    openai_api_key: Optional[str] = None
    openai_embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = Field(default=1536, gt=0)
    max_embed_chars: int = Field(default=8000, gt=0)
    allow_mock_embeddings: bool = True
    mock_embedding_seed: Optional[int] = None

    # --- Answer generation ---
    llm_provider: Literal["openai", "anthropic"] = "openai"
    openai_completion_model: str = "gpt-4o-mini"
    openai_summary_model: str = "gpt-4o-mini"
    anthropic_api_key: Optional[str] = None
    anthropic_model: str = "claude-haiku-4-5-20251001"
    llm_timeout_seconds: float = Field(default=30.0, gt=0)

    # --- Remote vector store (ChromaDB server) ---
    chroma_host: Optional[str] = None
    chroma_port: int = 8000
    chroma_ssl: bool = False
    chroma_api_key: Optional[str] = None
    chroma_tenant: Optional[str] = None
    chroma_database: Optional[str] = None
    chroma_collection: str = "tab-assistant-index"
    auto_create_index: bool = False
    remote_timeout_seconds: float = Field(default=10.0, gt=0)
    remote_init_retries: int = Field(default=3, ge=1)
    remote_init_backoff_seconds: float = Field(default=2.0, ge=0)

    # --- Local fallback store ---
    data_dir: Path = Field(default_factory=lambda: PROJECT_ROOT / "data")

    # --- Content thresholds ---
    max_content_length: int = Field(default=20000, gt=0)
    max_chunk_size: int = Field(default=1000, gt=0)
    chunk_overlap: int = Field(default=100, ge=0)
    min_content_length: int = Field(default=50, ge=0)
    chunk_threshold: int = Field(default=5000, gt=0)
    snippet_length: int = Field(default=500, gt=0)
    summary_threshold: int = Field(default=1000, ge=0)

    # --- Service ---
    sync_delay_seconds: float = Field(default=0.5, ge=0)
    search_limit: int = Field(default=10, gt=0)
    cors_origins: str = "*"
    port: int = 3000
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    @model_validator(mode="after")
    def _check_chunking(self) -> "Settings":
        if self.chunk_overlap >= self.max_chunk_size:
            raise ValueError("chunk_overlap must be smaller than max_chunk_size")
        return self

    @property
    def remote_configured(self) -> bool:
        return bool(self.chroma_host)

    @property
    def llm_api_key(self) -> Optional[str]:
        if self.llm_provider == "anthropic":
            return self.anthropic_api_key
        return self.openai_api_key

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """Load environment variables (optionally from .env) and validate Settings.

    Real environment variables take precedence over values in the .env file.
    """
    if env_file is None:
        env_file = PROJECT_ROOT / ".env"
    if env_file.exists():
        load_dotenv(env_file, override=False)

    data = {
        "openai_api_key": _env_optional("OPENAI_API_KEY"),
        "openai_embedding_model": os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small"),
        "embedding_dimensions": os.getenv("EMBEDDING_DIMENSIONS", "1536"),
        "max_embed_chars": os.getenv("MAX_EMBED_CHARS", "8000"),
        "allow_mock_embeddings": _env_bool("ALLOW_MOCK_EMBEDDINGS", True),
        "mock_embedding_seed": _env_optional("MOCK_EMBEDDING_SEED"),
        "llm_provider": os.getenv("LLM_PROVIDER", "openai").strip().lower(),
        "openai_completion_model": os.getenv("OPENAI_COMPLETION_MODEL", "gpt-4o-mini"),
        "openai_summary_model": os.getenv("OPENAI_SUMMARY_MODEL", "gpt-4o-mini"),
        "anthropic_api_key": _env_optional("ANTHROPIC_API_KEY"),
        "anthropic_model": os.getenv("ANTHROPIC_MODEL", "claude-haiku-4-5-20251001"),
        "llm_timeout_seconds": os.getenv("LLM_TIMEOUT_SECONDS", "30"),
        "chroma_host": _env_optional("CHROMA_HOST"),
        "chroma_port": os.getenv("CHROMA_PORT", "8000"),
        "chroma_ssl": _env_bool("CHROMA_SSL", False),
        "chroma_api_key": _env_optional("CHROMA_API_KEY"),
        "chroma_tenant": _env_optional("CHROMA_TENANT"),
        "chroma_database": _env_optional("CHROMA_DATABASE"),
        "chroma_collection": os.getenv("CHROMA_COLLECTION", "tab-assistant-index"),
        "auto_create_index": _env_bool("AUTO_CREATE_INDEX", False),
        "remote_timeout_seconds": os.getenv("REMOTE_TIMEOUT_SECONDS", "10"),
        "remote_init_retries": os.getenv("REMOTE_INIT_RETRIES", "3"),
        "remote_init_backoff_seconds": os.getenv("REMOTE_INIT_BACKOFF_SECONDS", "2"),
        "data_dir": os.getenv("DATA_DIR", str(PROJECT_ROOT / "data")),
        "max_content_length": os.getenv("MAX_CONTENT_LENGTH", "20000"),
        "max_chunk_size": os.getenv("MAX_CHUNK_SIZE", "1000"),
        "chunk_overlap": os.getenv("CHUNK_OVERLAP", "100"),
        "min_content_length": os.getenv("MIN_CONTENT_LENGTH", "50"),
        "chunk_threshold": os.getenv("CHUNK_THRESHOLD", "5000"),
        "snippet_length": os.getenv("SNIPPET_LENGTH", "500"),
        "summary_threshold": os.getenv("SUMMARY_THRESHOLD", "1000"),
        "sync_delay_seconds": os.getenv("SYNC_DELAY_SECONDS", "0.5"),
        "search_limit": os.getenv("SEARCH_LIMIT", "10"),
        "cors_origins": os.getenv("CORS_ORIGINS", "*"),
        "port": os.getenv("PORT", "3000"),
        "log_level": os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    }

    try:
        return Settings(**data)
    except ValidationError as e:
        raise RuntimeError(
            "Invalid configuration. Check the environment variables.\n"
            f"Details:\n{e}"
        ) from e
