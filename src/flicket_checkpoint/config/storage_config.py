"""Checkpoint storage configuration with environment variable loading."""

import os
from pydantic import BaseModel, Field
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class StorageConfig(BaseModel):
    """Configuration for the checkpoint store and its document backend."""

    # Backend selection
    backend: str = Field(
        default_factory=lambda: os.getenv("CHECKPOINT_BACKEND", "memory"),
        description="Document store backend (memory, redis)",
    )
    table_prefix: str = Field(
        default_factory=lambda: os.getenv("CHECKPOINT_TABLE_PREFIX", ""),
        description="Prefix prepended to the checkpoints table name",
    )

    # Redis Configuration
    redis_url: str = Field(
        default_factory=lambda: os.getenv("REDIS_URL", "redis://localhost:6379/0"),
        description="Redis connection URL",
    )
    connection_pool_size: int = Field(
        default_factory=lambda: int(os.getenv("CONNECTION_POOL_SIZE", "10")),
        description="Connection pool size for Redis",
    )
    connect_retries: int = Field(
        default_factory=lambda: int(os.getenv("REDIS_CONNECT_RETRIES", "3")),
        description="Connection attempts before giving up",
    )

    @property
    def table_name(self) -> str:
        """Name of the checkpoints table (Redis key namespace)."""
        return f"{self.table_prefix}Checkpoints"

    class Config:
        """Pydantic config."""

        env_file = ".env"
        env_file_encoding = "utf-8"
