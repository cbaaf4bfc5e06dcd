"""
Record stores for watched-repository resources.

A store lists, reads and wholesale-updates untyped records under optimistic
concurrency.
"""

from store.base import (
    ConflictError,
    NotFoundError,
    RecordStore,
    ResourceType,
    StoreError,
)

__all__ = [
    "ConflictError",
    "NotFoundError",
    "RecordStore",
    "ResourceType",
    "StoreError",
]
