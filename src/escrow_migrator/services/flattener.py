"""Vesting flattener - collapses matured vesting entries into one amount.

``checkAccountSchedule`` returns a flat interleaved sequence
``[t0, a0, t1, a1, ...]`` padded with ``(0, 0)`` pairs. Entries whose
timestamp is at or before the reference timestamp have matured; their amounts
are summed into a single FlattenedEntry per account.
"""

from typing import Optional, Sequence

import structlog

from escrow_migrator.core.errors import MalformedScheduleEntry
from escrow_migrator.domain.models import Account, Amount, FlattenedEntry
from escrow_migrator.integrations.chain.client import LedgerClient

log = structlog.get_logger()


def schedule_pairs(schedule: Sequence[int]) -> list[tuple[int, int]]:
    """Split an interleaved schedule into ``(timestamp, amount)`` pairs.

    A trailing value without a partner is not included.
    """
    return [(int(schedule[i]), int(schedule[i + 1])) for i in range(0, len(schedule) - 1, 2)]


def check_pair(address: str, timestamp: int, amount: int) -> None:
    """Raise MalformedScheduleEntry if exactly one of the pair is zero."""
    if (timestamp == 0) != (amount == 0):
        raise MalformedScheduleEntry(address, timestamp, amount)


def flatten_schedule(
    address: str,
    schedule: Sequence[int],
    reference_timestamp: int,
) -> Amount:
    """Sum the matured entries of one account's schedule.

    Empty ``(0, 0)`` slots and entries after ``reference_timestamp`` are
    ignored. Malformed pairs, and a trailing value with no partner, are
    logged and skipped.
    """
    if len(schedule) % 2:
        log.warning(
            "malformed_schedule_entry",
            address=address,
            reason="unpaired_trailing_value",
            value=int(schedule[-1]),
            length=len(schedule),
        )

    total = 0
    for timestamp, amount in schedule_pairs(schedule):
        if timestamp == 0 and amount == 0:
            continue
        if timestamp > reference_timestamp:
            continue
        try:
            check_pair(address, timestamp, amount)
        except MalformedScheduleEntry as e:
            log.warning(
                "malformed_schedule_entry",
                address=address,
                timestamp=e.timestamp,
                amount=e.amount,
            )
            continue
        total += amount
    return total


class VestingFlattener:
    """Derives FlattenedEntry records for accounts above the migration threshold."""

    def __init__(self, client: LedgerClient):
        self._client = client
        self._log = log.bind(component="vesting_flattener")

    async def flatten(
        self,
        accounts: Sequence[Account],
        threshold: Amount,
        reference_timestamp: int,
    ) -> list[FlattenedEntry]:
        """Return one entry per eligible account with a positive matured sum.

        Args:
            accounts: Every classified account, migrated or already-migrated.
            threshold: ``migrateEntriesThresholdAmount`` in base units. Only
                balances strictly above it are considered.
            reference_timestamp: Maturity cut-off (latest block timestamp).
        """
        eligible = [a for a in accounts if a.legacy_balance > threshold]
        self._log.info(
            "flattening_started",
            accounts=len(accounts),
            eligible=len(eligible),
            threshold=threshold,
            reference_timestamp=reference_timestamp,
        )

        entries: list[FlattenedEntry] = []
        for account in eligible:
            entry = await self.flatten_account(account.address, reference_timestamp)
            if entry is not None:
                entries.append(entry)

        self._log.info("flattening_finished", entries=len(entries))
        return entries

    async def flatten_account(
        self,
        address: str,
        reference_timestamp: int,
    ) -> Optional[FlattenedEntry]:
        existing = await self._client.num_vesting_entries(address)
        if existing > 0:
            self._log.info(
                "vesting_entries_already_imported",
                address=address,
                num_vesting_entries=existing,
            )
            return None

        schedule = await self._client.check_account_schedule(address)
        total = flatten_schedule(address, schedule, reference_timestamp)
        if total <= 0:
            return None
        return FlattenedEntry(address=address, amount=total)
