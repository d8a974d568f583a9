"""
ReconcileLoop daemon for continuous reconciliation.

This module implements the control loop that:
- Runs a reconciliation pass, then sleeps for the delay the pass asked for
  (or the regular interval once the cluster is converged)
- Wakes up early when a decommission job finishes
- Keeps running after a pass fails unexpectedly
- Handles graceful shutdown on SIGINT/SIGTERM

Sleeping uses asyncio.Event waits with a timeout rather than asyncio.sleep
so shutdown and wake-ups interrupt it immediately.
"""

import asyncio
import functools
import logging
import signal

from operator_cassandra.errors import ConfigurationInvariantError
from operator_cassandra.reconciler import ClusterReconciler

logger = logging.getLogger(__name__)


class ReconcileLoop:
    """
    Long-running daemon that reconciles a cluster until told to stop.

    Example:
        loop = ReconcileLoop(reconciler, interval_seconds=30.0)
        tracker.on_finished = lambda name: loop.wake()
        await loop.run()  # Runs until SIGINT/SIGTERM
    """

    def __init__(
        self,
        reconciler: ClusterReconciler,
        interval_seconds: float = 30.0,
        error_retry_seconds: float = 10.0,
        install_signal_handlers: bool = True,
    ) -> None:
        """
        Initialize the control loop.

        Args:
            reconciler: Runs one pass per iteration
            interval_seconds: Seconds between passes once converged (default 30)
            error_retry_seconds: Delay after a pass failed unexpectedly (default 10)
            install_signal_handlers: Register SIGINT/SIGTERM handlers in run()
        """
        self.reconciler = reconciler
        self.interval = interval_seconds
        self.error_retry = error_retry_seconds
        self.install_signal_handlers = install_signal_handlers
        self._shutdown = asyncio.Event()
        self._wake = asyncio.Event()
        self.passes = 0

    async def run(self) -> None:
        """
        Run passes until shutdown.

        Raises:
            ConfigurationInvariantError: Propagated from the reconciler; the
                loop stops instead of retrying forever.
        """
        if self.install_signal_handlers:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, functools.partial(self._handle_signal, sig))

        logger.info(f"Reconcile loop starting (interval: {self.interval}s)")

        while not self._shutdown.is_set():
            # Wake-ups that arrive during the pass still shorten the next sleep
            self._wake.clear()
            try:
                result = await self.reconciler.reconcile_once()
            except ConfigurationInvariantError:
                raise
            except Exception as e:
                self.passes += 1
                logger.exception(f"Reconcile pass failed, retrying in {self.error_retry}s: {e}")
                await self._sleep(self.error_retry)
                continue
            self.passes += 1

            delay = self.interval if result.converged else result.requeue_after
            if result.converged:
                logger.debug(f"Cluster converged, next pass in {delay}s")
            await self._sleep(delay)

        logger.info("Reconcile loop stopped")

    def wake(self) -> None:
        """Run the next pass now instead of waiting out the delay."""
        self._wake.set()

    def stop(self) -> None:
        self._shutdown.set()

    def _handle_signal(self, sig: signal.Signals) -> None:
        """Handle shutdown signal by setting shutdown event."""
        logger.info(f"Received {sig.name}, shutting down...")
        self._shutdown.set()

    async def _sleep(self, delay: float) -> None:
        waiters = [
            asyncio.create_task(self._shutdown.wait()),
            asyncio.create_task(self._wake.wait()),
        ]
        try:
            await asyncio.wait(waiters, timeout=delay, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()
