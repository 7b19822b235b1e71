"""Persistence interfaces and the in-memory forum store."""

from .base import StorageError, ThreadNotStoredError, ThreadRepository
from .memory import InMemoryForumStore

__all__ = ["InMemoryForumStore", "StorageError", "ThreadNotStoredError", "ThreadRepository"]
