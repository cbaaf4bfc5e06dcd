"""
Record Store Base - Abstract interface for the external resource store.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple


class StoreError(Exception):
    """Base error for store operations."""


class NotFoundError(StoreError):
    """The requested record does not exist."""


class ConflictError(StoreError):
    """The record changed between read and write."""


@dataclass(frozen=True)
class ResourceType:
    """Group/version/plural triple identifying a custom resource type."""

    group: str
    version: str
    plural: str

    def __str__(self) -> str:
        return f"{self.plural}.{self.group}/{self.version}"


class RecordStore(ABC):
    """
    Abstract base class for record stores.

    Records are untyped nested dicts. Every record carries an opaque version
    token; ``update_whole`` only succeeds while the stored version still
    matches the expected one.
    """

    @abstractmethod
    async def list(
        self, resource_type: ResourceType, namespace: str
    ) -> List[Dict[str, Any]]:
        """
        List all records of a type in a namespace.

        Raises:
            StoreError: If the store cannot be queried.
        """
        pass

    @abstractmethod
    async def get(
        self, resource_type: ResourceType, namespace: str, name: str
    ) -> Tuple[Dict[str, Any], str]:
        """
        Read one record and its version.

        Raises:
            NotFoundError: If the record does not exist.
            StoreError: On any other failure.
        """
        pass

    @abstractmethod
    async def update_whole(
        self,
        resource_type: ResourceType,
        namespace: str,
        name: str,
        record: Dict[str, Any],
        expected_version: str,
    ) -> Dict[str, Any]:
        """
        Replace a record, provided it is still at ``expected_version``.

        Returns:
            The stored record.

        Raises:
            ConflictError: If the record changed since it was read.
            NotFoundError: If the record no longer exists.
            StoreError: On any other failure.
        """
        pass

    async def close(self) -> None:
        """Release any connections held by the store."""
        return None
