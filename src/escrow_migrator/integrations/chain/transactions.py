"""Stage, submit and confirm a single state-mutating ledger call.

Every migration batch goes through exactly one pass of this protocol:

    STAGED -> SUBMITTED -> CONFIRMED | REJECTED

- STAGED: the contract call is built but nothing has been sent.
- SUBMITTED: the signed transaction was accepted by the node and a hash is
  known. The runner then waits (bounded by ``confirmation_timeout``) for
  the receipt. Running out of time leaves the result SUBMITTED with
  ``timed_out`` set; the transaction may still be mined later, so the
  caller decides how to escalate.
- CONFIRMED: the receipt reports success; gas used is returned for logging.
- REJECTED: sending failed, or the receipt reports a revert. The revert
  reason is recovered when the node can replay the call.

There is no automatic resubmission. A second attempt with adjusted
parameters could double-apply a batch, so repeating is left to the operator.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from escrow_migrator.core.errors import MigrationError
from escrow_migrator.domain.models import TxResult, TxStatus

log = structlog.get_logger()


@dataclass
class PendingTransaction:
    """A call moving through the protocol."""

    label: str
    call: Any
    status: TxStatus = TxStatus.STAGED
    tx_hash: Optional[str] = None
    staged_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    submitted_at: Optional[datetime] = None

    def result(self, **kwargs: Any) -> TxResult:
        return TxResult(status=self.status, label=self.label, tx_hash=self.tx_hash, **kwargs)


class TransactionRunner:
    """Runs the submit/confirm protocol against a ledger client.

    The client must provide ``send_call(call) -> tx_hash``,
    ``wait_for_receipt(tx_hash, timeout) -> receipt | None`` and
    ``revert_reason(call, block_number) -> str | None``.
    """

    def __init__(self, client: Any, confirmation_timeout: float):
        self._client = client
        self._confirmation_timeout = confirmation_timeout
        self._log = log.bind(component="transaction_runner")

    async def execute(self, call: Any, label: str) -> TxResult:
        """Take ``call`` from STAGED to a terminal (or timed-out) state."""
        tx = PendingTransaction(label=label, call=call)
        self._log.info("tx_staged", label=label)

        try:
            tx.tx_hash = await self._client.send_call(call)
        except MigrationError as e:
            tx.status = TxStatus.REJECTED
            self._log.error("tx_stage_failed", label=label, error=str(e))
            return tx.result(error=f"Cannot stage: {e}")

        tx.status = TxStatus.SUBMITTED
        tx.submitted_at = datetime.now(timezone.utc)
        self._log.info("tx_submitted", label=label, tx_hash=tx.tx_hash)

        receipt = await self._client.wait_for_receipt(
            tx.tx_hash, self._confirmation_timeout
        )

        if receipt is None:
            self._log.warning(
                "tx_confirmation_timeout",
                label=label,
                tx_hash=tx.tx_hash,
                timeout_seconds=self._confirmation_timeout,
            )
            return tx.result(
                timed_out=True,
                error=f"No receipt after {self._confirmation_timeout}s",
            )

        block_number = receipt.get("blockNumber")
        gas_used = receipt.get("gasUsed")

        if receipt.get("status") == 1:
            tx.status = TxStatus.CONFIRMED
            self._log.info(
                "tx_confirmed",
                label=label,
                tx_hash=tx.tx_hash,
                block=block_number,
                gas_used=gas_used,
            )
            return tx.result(block_number=block_number, gas_used=gas_used)

        tx.status = TxStatus.REJECTED
        reason = await self._client.revert_reason(call, block_number)
        self._log.error(
            "tx_reverted",
            label=label,
            tx_hash=tx.tx_hash,
            block=block_number,
            reason=reason,
        )
        return tx.result(
            block_number=block_number,
            gas_used=gas_used,
            error=f'Cannot transact. Reason: "{reason or "unknown"}"',
        )
