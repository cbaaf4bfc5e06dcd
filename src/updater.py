"""
Conflict-Safe Updater - read-modify-write with bounded retry on conflict.

Every attempt starts from a fresh read, so a concurrent writer's changes
are always carried forward and never overwritten by a stale copy.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from changeset import Changeset
from store.base import ConflictError, RecordStore, ResourceType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded backoff between conflicting update attempts."""

    steps: int = 5
    base_delay: float = 0.01  # seconds
    factor: float = 1.0
    jitter: float = 0.1
    max_delay: Optional[float] = None

    def delays(self) -> Iterator[float]:
        """Yield the pause before each retry (``steps - 1`` values)."""
        delay = self.base_delay
        for _ in range(self.steps - 1):
            jittered = delay
            if self.jitter > 0:
                jittered = delay + delay * self.jitter * random.random()
            if self.max_delay is not None:
                jittered = min(jittered, self.max_delay)
            yield jittered
            delay *= self.factor


class ConflictSafeUpdater:
    """Applies changesets to store records under optimistic concurrency."""

    def __init__(
        self,
        store: RecordStore,
        resource_type: ResourceType,
        policy: Optional[RetryPolicy] = None,
    ):
        self.store = store
        self.resource_type = resource_type
        self.policy = policy or RetryPolicy()

    async def _attempt(self, namespace: str, name: str, changeset: Changeset) -> None:
        record, version = await self.store.get(self.resource_type, namespace, name)
        updated = changeset.apply(record)
        await self.store.update_whole(
            self.resource_type, namespace, name, updated, version
        )

    async def apply_changeset(self, key: Tuple[str, str], changeset: Changeset) -> int:
        """
        Merge a changeset into the record identified by ``key``.

        Args:
            key: (namespace, name) of the record.
            changeset: Changes to merge.

        Returns:
            The number of attempts it took.

        Raises:
            ConflictError: If every attempt in the retry budget conflicted.
            FieldPathError: If a change cannot be applied to the record.
            StoreError: If a read or a non-conflict write fails.
        """
        namespace, name = key
        delays = self.policy.delays()
        attempt = 0

        while True:
            attempt += 1
            try:
                await self._attempt(namespace, name, changeset)
                return attempt
            except ConflictError as e:
                delay = next(delays, None)
                if delay is None:
                    logger.warning(
                        f"Giving up on {namespace}/{name} after {attempt} "
                        f"conflicting attempts"
                    )
                    raise
                logger.debug(
                    f"Conflict updating {namespace}/{name} (attempt {attempt}): "
                    f"{e}, retrying in {delay:.3f}s"
                )
                await asyncio.sleep(delay)
