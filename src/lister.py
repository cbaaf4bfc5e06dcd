"""
Resource Lister - decodes watched-repository records into Repositories.
"""

import logging
from typing import List

from repository import DecodeError, Repository, decode_repository
from store.base import RecordStore, ResourceType

logger = logging.getLogger(__name__)


class ResourceLister:
    """Lists every watched repository in one namespace."""

    def __init__(
        self,
        store: RecordStore,
        resource_type: ResourceType,
        namespace: str,
        skip_invalid_records: bool = False,
    ):
        self.store = store
        self.resource_type = resource_type
        self.namespace = namespace
        self.skip_invalid_records = skip_invalid_records

    async def list(self) -> List[Repository]:
        """
        List and decode all records.

        Returns:
            A fresh Repository for every record in the namespace.

        Raises:
            StoreError: If the store cannot be queried.
            DecodeError: If a record is malformed and skipping is disabled.
        """
        records = await self.store.list(self.resource_type, self.namespace)

        repositories: List[Repository] = []
        for record in records:
            try:
                repo = decode_repository(record)
            except DecodeError as e:
                if not self.skip_invalid_records:
                    raise
                logger.warning(f"Skipping invalid record: {e}")
                continue

            logger.info(f"Found repo {repo}")
            repositories.append(repo)

        return repositories
