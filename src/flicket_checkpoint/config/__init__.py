"""Configuration package."""

from .storage_config import StorageConfig

__all__ = ["StorageConfig"]
