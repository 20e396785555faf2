"""
Operator interrupt handling.

A SIGINT/SIGTERM never cancels work in flight. The signal only records that
a stop was requested; the batchers consult the guard at batch boundaries,
after the current batch has been confirmed and checkpointed, so the artifact
on disk always matches what the ledger has committed.
"""

import asyncio
import signal
from datetime import datetime, timezone
from typing import Optional

import structlog

from escrow_migrator.core.errors import MigrationInterrupted

log = structlog.get_logger()


class InterruptGuard:
    """Records stop requests and raises them at safe points.

    Usage:
        guard = InterruptGuard()
        guard.install_signal_handlers()
        for batch in batches:
            guard.check("migration", batch.index)
            await submit(batch)
            store.save(result)
    """

    def __init__(self) -> None:
        self._requested = False
        self._signal_received: Optional[str] = None
        self._requested_at: Optional[datetime] = None
        self._installed: list[signal.Signals] = []
        self._log = log.bind(component="interrupt_guard")

    @property
    def stop_requested(self) -> bool:
        """Whether an operator asked the run to stop."""
        return self._requested

    @property
    def signal_received(self) -> Optional[str]:
        """Name of the signal that requested the stop, if any."""
        return self._signal_received

    def install_signal_handlers(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Install SIGTERM and SIGINT handlers on the running loop."""
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                self._log.warning("no_event_loop_for_signal_handlers")
                return

        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self._handle_signal, sig)
            except (NotImplementedError, RuntimeError):
                # Windows event loops do not support add_signal_handler
                continue
            self._installed.append(sig)

        self._log.debug("signal_handlers_installed", signals=[s.name for s in self._installed])

    def remove_signal_handlers(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Remove handlers installed by ``install_signal_handlers``."""
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                return

        for sig in self._installed:
            try:
                loop.remove_signal_handler(sig)
            except (ValueError, RuntimeError):
                pass
        self._installed = []

    def _handle_signal(self, sig: signal.Signals) -> None:
        signal_name = sig.name if hasattr(sig, "name") else str(sig)
        if self._requested:
            self._log.warning("stop_already_requested", signal=signal_name)
            return
        self._log.warning(
            "stop_requested",
            signal=signal_name,
            note="finishing current batch before stopping",
        )
        self.request_stop(signal_name)

    def request_stop(self, reason: str = "manual") -> None:
        """Request a stop from code (tests, embedding applications)."""
        self._requested = True
        self._signal_received = reason
        self._requested_at = datetime.now(timezone.utc)

    def check(self, stage: str, next_batch: int) -> None:
        """Raise MigrationInterrupted if a stop was requested.

        Args:
            stage: Pipeline stage about to start another batch.
            next_batch: Index of the batch that would run next.
        """
        if not self._requested:
            return
        self._log.warning(
            "stopping_at_batch_boundary",
            stage=stage,
            next_batch=next_batch,
            signal=self._signal_received,
        )
        raise MigrationInterrupted(
            f"Stopped by operator before {stage} batch {next_batch}"
        )
