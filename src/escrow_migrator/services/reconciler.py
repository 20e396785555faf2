"""Reconciler - compares total escrowed balance across both ledgers."""

import asyncio

import structlog

from escrow_migrator.domain.models import ReconciliationReport, format_units
from escrow_migrator.integrations.chain.client import Ledger, LedgerClient

log = structlog.get_logger()


class Reconciler:
    """Reads both totals and reports whether they match.

    A mismatch is reported, never raised: the artifact must still be written.
    """

    def __init__(self, client: LedgerClient, dry_run: bool = False):
        self._client = client
        self._dry_run = dry_run
        self._log = log.bind(component="reconciler", dry_run=dry_run)

    async def reconcile(self) -> ReconciliationReport:
        legacy_total, successor_total = await asyncio.gather(
            self._client.total_escrowed_balance(Ledger.LEGACY),
            self._client.total_escrowed_balance(Ledger.SUCCESSOR),
        )
        report = ReconciliationReport(
            legacy_total=legacy_total,
            successor_total=successor_total,
            dry_run=self._dry_run,
        )

        if report.matched:
            self._log.info(
                "reconciliation_matched",
                total=str(legacy_total),
                total_tokens=format_units(legacy_total),
            )
        else:
            self._log.error(
                "reconciliation_mismatch",
                legacy_total=str(legacy_total),
                successor_total=str(successor_total),
                difference=str(report.difference),
                legacy_tokens=format_units(legacy_total),
                successor_tokens=format_units(successor_total),
            )
        return report
