"""Configuration models and YAML loader for the candidate evaluator."""

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


class StorageConfig(BaseModel):
    """Where jobs, uploaded files and the ground-truth corpus live on disk."""

    data_dir: str = ".data"
    database: str = ".data/evaluator.db"
    upload_dir: str = ".data/files"
    corpus_path: str = ".data/ground-truth.jsonl"
    docs_dir: str = "docs"


class ChunkingConfig(BaseModel):
    """Token window settings used when ingesting ground-truth documents."""

    chunk_size: int = Field(default=1000, ge=1)
    chunk_overlap: int = Field(default=200, ge=0)
    min_chunk_size: int = Field(default=200, ge=0)

    @model_validator(mode="after")
    def window_bounds(self) -> "ChunkingConfig":
        if self.chunk_overlap >= self.chunk_size:
            msg = "chunk_overlap must be smaller than chunk_size"
            raise ValueError(msg)
        if self.min_chunk_size > self.chunk_size:
            msg = "min_chunk_size must not exceed chunk_size"
            raise ValueError(msg)
        return self


class RetrievalConfig(BaseModel):
    """Retrieval backend selection and vector store settings."""

    backend: Literal["lexical", "vector"] = "lexical"
    top_k: int = Field(default=3, ge=1, le=20)
    collection: str = "ground-truth"
    qdrant_url: str | None = None
    qdrant_path: str | None = ".data/qdrant"
    embedding_model: str = "text-embedding-3-large"
    embedding_batch_size: int = Field(default=64, ge=1)


class LLMConfig(BaseModel):
    """Model provider used for the three structured completions."""

    provider: str = "openrouter"
    model: str | None = None
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)

    @field_validator("provider")
    @classmethod
    def provider_known(cls, v: str) -> str:
        from evaluator.llm import available_providers

        v = v.strip().lower()
        if v not in available_providers():
            msg = f"provider must be one of {available_providers()}, got '{v}'"
            raise ValueError(msg)
        return v


class RetryConfig(BaseModel):
    """Exponential backoff parameters for provider calls (seconds)."""

    max_attempts: int = Field(default=5, ge=1)
    initial_delay: float = Field(default=0.5, ge=0.0)
    max_delay: float = Field(default=30.0, ge=0.0)
    factor: float = Field(default=2.0, ge=1.0)
    jitter: bool = True


class ServerConfig(BaseModel):
    """HTTP server binding."""

    host: str = "127.0.0.1"
    port: int = Field(default=3000, ge=1, le=65535)


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    storage: StorageConfig = Field(default_factory=StorageConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
