"""
Main entry point for Ernesto.

Builds the store connection and the controller, then runs the
reconciliation loop until SIGINT or SIGTERM.
"""

import asyncio
import logging
import signal
import sys
from typing import List, Optional

from config import Config, get_config
from controller import Controller, ReconcilerContext, WorkerResult
from store.base import RecordStore, StoreError
from store.kube import KubernetesStore

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


class Application:
    """Main application that owns the store and the controller."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or get_config()
        self.store: Optional[RecordStore] = None
        self.controller: Optional[Controller] = None

    def initialize(self, store: Optional[RecordStore] = None):
        """
        Initialize all components.

        Raises:
            StoreError: If the cluster connection cannot be configured.
        """
        logger.info("Initializing Ernesto")

        self.store = store or KubernetesStore.from_config(self.config.store.kubeconfig)
        ctx = ReconcilerContext.from_config(self.config, self.store)
        self.controller = Controller(ctx)

        logger.info(
            f"Ernesto initialized: watching {self.config.store.plural}."
            f"{self.config.store.group} in namespace {self.config.store.namespace}"
        )

    async def start(self):
        """Run the controller until it is stopped."""
        if not self.controller:
            self.initialize()
        await self.controller.start()

    async def run_once(self) -> List[WorkerResult]:
        """Run a single reconciliation pass and wait for it to finish."""
        if not self.controller:
            self.initialize()
        return await self.controller.run_once()

    async def stop(self):
        """Stop the controller gracefully."""
        if self.controller:
            await self.controller.stop()

    async def close(self):
        if self.store:
            await self.store.close()


async def main(config: Optional[Config] = None) -> int:
    """Run the long-lived controller. Returns the process exit code."""
    app = Application(config)

    try:
        app.initialize()
    except StoreError as e:
        logger.error(f"Failed to initialize cluster client: {e}")
        return 1

    # Set up signal handlers for graceful shutdown
    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        asyncio.create_task(app.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await app.start()
    finally:
        await app.close()
    return 0


if __name__ == "__main__":
    cfg = get_config()
    configure_logging(cfg.log_level)
    sys.exit(asyncio.run(main(cfg)))
