"""Lazy historical event retrieval.

Providers cap the block span of a single ``eth_getLogs`` request, so the
requested range is walked in fixed-size chunks and events are yielded as
each chunk arrives.
"""

from collections.abc import AsyncIterator
from typing import Any, Union

import structlog

from escrow_migrator.integrations.chain.client import Ledger, LedgerClient

log = structlog.get_logger()

DEFAULT_CHUNK_SIZE = 100_000

BlockTag = Union[int, str]


class EventSource:
    """Produces decoded contract events over a block range."""

    def __init__(self, client: LedgerClient, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self._client = client
        self._chunk_size = chunk_size
        self._log = log.bind(component="event_source")

    async def _resolve(self, block: BlockTag) -> int:
        if block == "latest":
            return await self._client.get_block_number()
        return int(block)

    async def iter_events(
        self,
        ledger: Ledger,
        event_name: str,
        from_block: BlockTag = 0,
        to_block: BlockTag = "latest",
    ) -> AsyncIterator[Any]:
        """Yield events in block order from ``from_block`` to ``to_block`` inclusive."""
        start = await self._resolve(from_block)
        end = await self._resolve(to_block)

        self._log.info(
            "scanning_events",
            ledger=ledger.value,
            event_name=event_name,
            from_block=start,
            to_block=end,
        )

        total = 0
        for chunk_start in range(start, end + 1, self._chunk_size):
            chunk_end = min(chunk_start + self._chunk_size - 1, end)
            events = await self._client.get_logs(ledger, event_name, chunk_start, chunk_end)
            self._log.debug(
                "event_chunk",
                from_block=chunk_start,
                to_block=chunk_end,
                count=len(events),
            )
            total += len(events)
            for event in events:
                yield event

        self._log.info("events_scanned", event_name=event_name, count=total)
