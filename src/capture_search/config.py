"""
Runtime configuration for capture-search.

Settings are read from environment variables (case-insensitive) and an
optional .env file in the working directory.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def mask_secret(value: Optional[str]) -> Optional[str]:
    """Mask a secret for logging, keeping only the last 4 characters."""
    if not value:
        return None
    if len(value) <= 8:
        return "****"
    return f"****{value[-4:]}"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Embedding provider
    openai_api_key: Optional[str] = None
    openai_embedding_model: str = "text-embedding-3-small"
    openai_base_url: Optional[str] = None
    embedding_dimensions: Optional[int] = Field(default=None, gt=0)
    embedding_max_text_length: int = Field(default=8000, gt=0)
    embedding_max_retries: int = Field(default=3, ge=1)
    embedding_retry_delay: float = Field(default=1.0, ge=0.0)
    embedding_timeout: float = Field(default=30.0, gt=0.0)

    # Vector index
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: Optional[str] = None
    vector_collection: str = "knowledge_base"
    vector_size: int = Field(default=1536, gt=0)

    # Relational store
    database_url: str = "sqlite:///data/metadata.db"

    # Pipeline
    retry_batch_size: int = Field(default=10, ge=1)
    embed_placeholders: bool = False

    log_level: str = "INFO"

    def masked(self) -> dict:
        """Settings as a dict that is safe to log."""
        data = self.model_dump()
        data["openai_api_key"] = mask_secret(self.openai_api_key)
        data["qdrant_api_key"] = mask_secret(self.qdrant_api_key)
        return data
