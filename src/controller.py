"""
Ernesto Controller - Main reconciliation loop.

Similar to Kubernetes controllers, periodically lists the watched
repositories and reconciles each one's observed commit onto its record.
Every repository is handled by an independent worker task; a failing
worker never affects the loop or its siblings.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import List, Optional, Set

from changeset import build_sync_changeset
from config import Config, ReconcilerConfig
from lister import ResourceLister
from repository import Repository
from resolver import RevisionResolver
from store.base import RecordStore, ResourceType
from updater import ConflictSafeUpdater, RetryPolicy

logger = logging.getLogger(__name__)


@dataclass
class WorkerResult:
    """Outcome of reconciling one repository."""

    repository: Repository
    success: bool = False
    commit_hash: Optional[str] = None
    attempts: int = 0
    error: Optional[str] = None
    duration_seconds: float = 0.0


class ReconcilerContext:
    """
    Everything the controller needs, built once at startup.

    Holds the shared store connection, the lister, resolver and updater
    built on it, and the shutdown event used for cooperative cancellation.
    """

    def __init__(
        self,
        store: RecordStore,
        lister: ResourceLister,
        resolver: RevisionResolver,
        updater: ConflictSafeUpdater,
        config: Optional[ReconcilerConfig] = None,
        shutdown_event: Optional[asyncio.Event] = None,
    ):
        self.store = store
        self.lister = lister
        self.resolver = resolver
        self.updater = updater
        self.config = config or ReconcilerConfig()
        self.shutdown_event = shutdown_event or asyncio.Event()

    @classmethod
    def from_config(cls, config: Config, store: RecordStore) -> "ReconcilerContext":
        """Wire the components together from application configuration."""
        resource_type = ResourceType(
            group=config.store.group,
            version=config.store.version,
            plural=config.store.plural,
        )
        policy = RetryPolicy(
            steps=config.retry.steps,
            base_delay=config.retry.base_delay,
            factor=config.retry.factor,
            jitter=config.retry.jitter,
        )
        return cls(
            store=store,
            lister=ResourceLister(
                store,
                resource_type,
                config.store.namespace,
                skip_invalid_records=config.reconciler.skip_invalid_records,
            ),
            resolver=RevisionResolver(timeout=config.resolver.timeout),
            updater=ConflictSafeUpdater(store, resource_type, policy),
            config=config.reconciler,
        )


class Controller:
    """
    Main controller that implements the reconciliation loop.

    Runs one pass on startup and one per tick afterwards. ``stop()`` ends
    the loop; workers already running are always allowed to finish so no
    record is left half-updated.
    """

    def __init__(self, ctx: ReconcilerContext):
        self.ctx = ctx
        self.config = ctx.config
        self.poll_interval = self.config.poll_interval
        self.running = False
        self._workers: Set[asyncio.Task] = set()
        self._semaphore: Optional[asyncio.Semaphore] = None
        if self.config.max_concurrent_workers > 0:
            self._semaphore = asyncio.Semaphore(self.config.max_concurrent_workers)

    @property
    def in_flight(self) -> int:
        return len(self._workers)

    async def start(self):
        """Run the reconciliation loop until stopped, then drain workers."""
        logger.info(f"Starting Ernesto controller (poll interval {self.poll_interval}s)")
        self.running = True

        try:
            await self._reconciliation_loop()
        finally:
            await self.wait_for_workers()
            self.running = False
            logger.info("Ernesto controller stopped")

    async def stop(self):
        """Stop accepting new ticks."""
        logger.info("Stopping Ernesto controller")
        self.running = False
        self.ctx.shutdown_event.set()

    async def _wait_for_tick(self) -> bool:
        """Sleep one interval. Returns False if shutdown was requested."""
        try:
            await asyncio.wait_for(
                self.ctx.shutdown_event.wait(), timeout=self.poll_interval
            )
            return False
        except asyncio.TimeoutError:
            return True

    async def _reconciliation_loop(self):
        if self.ctx.shutdown_event.is_set():
            logger.info("Shutdown requested before start, skipping cold start")
            return

        # Cold start
        await self.reconcile_all()

        while not self.ctx.shutdown_event.is_set():
            if not await self._wait_for_tick():
                break

            if self.config.skip_overlapping_ticks and self._workers:
                logger.warning(
                    f"Skipping tick: {len(self._workers)} workers from the "
                    f"previous pass are still running"
                )
                continue

            await self.reconcile_all()

    def dispatch(self, repositories: List[Repository]) -> List[asyncio.Task]:
        """Launch one independent worker per repository."""
        tasks = []
        for repo in repositories:
            task = asyncio.create_task(
                self.reconcile_repository(repo), name=f"reconcile-{repo}"
            )
            self._workers.add(task)
            task.add_done_callback(self._workers.discard)
            tasks.append(task)
        return tasks

    async def reconcile_all(self) -> List[asyncio.Task]:
        """
        Run one pass: list repositories and launch their workers.

        Lister failures are logged and end the pass; the next tick proceeds
        as normal. Does not wait for the workers.
        """
        try:
            repositories = await self.ctx.lister.list()
        except Exception as e:
            logger.error(f"Failed to get repos: {e}")
            return []

        if not repositories:
            logger.info("No repositories to reconcile")
            return []

        logger.info(f"Reconciling {len(repositories)} repositories")
        return self.dispatch(repositories)

    async def run_once(self) -> List[WorkerResult]:
        """
        Run a single pass and wait for all of its workers.

        Raises:
            StoreError: If the repositories cannot be listed.
            DecodeError: If a record is malformed and skipping is disabled.
        """
        repositories = await self.ctx.lister.list()
        tasks = self.dispatch(repositories)
        if not tasks:
            return []
        return list(await asyncio.gather(*tasks))

    async def reconcile_repository(self, repo: Repository) -> WorkerResult:
        """Resolve the latest commit of ``repo`` and record it on its resource."""
        if self._semaphore is None:
            return await self._reconcile(repo)
        async with self._semaphore:
            return await self._reconcile(repo)

    async def _reconcile(self, repo: Repository) -> WorkerResult:
        result = WorkerResult(repository=repo)
        start_time = time.monotonic()

        try:
            try:
                result.commit_hash = await self.ctx.resolver.resolve_latest(repo)
            except Exception as e:
                result.error = str(e)
                logger.error(
                    f"Failed to get latest commit for {repo} "
                    f"({repo.remote_url}): {e}"
                )
                return result

            logger.info(
                f"Latest commit hash retrieved from repository {repo}: "
                f"{result.commit_hash}"
            )

            changeset = build_sync_changeset(
                result.commit_hash, self.config.annotation_prefix
            )
            try:
                result.attempts = await self.ctx.updater.apply_changeset(
                    repo.key, changeset
                )
            except Exception as e:
                result.error = str(e)
                logger.warning(
                    f"Failed to update GithubRepository {repo} "
                    f"({repo.remote_url}): {e}"
                )
                return result

            result.success = True
            logger.info(f"Updated {repo} to {result.commit_hash}")
            return result
        finally:
            result.duration_seconds = time.monotonic() - start_time

    async def wait_for_workers(self):
        """Join every in-flight worker."""
        if not self._workers:
            return
        logger.info(f"Waiting for {len(self._workers)} in-flight workers")
        await asyncio.gather(*list(self._workers), return_exceptions=True)
