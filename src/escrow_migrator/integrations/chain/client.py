"""Ledger client for the legacy and successor escrow contracts.

This client handles every chain interaction the migration needs:
- Read-only contract queries (balances, schedules, thresholds, totals)
- Block and historical event lookups
- Signing and submitting the two migration calls

Reads are retried on transient provider errors. Mutating calls are routed
through the TransactionRunner and are never retried.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Any, Optional, Sequence

import structlog
from eth_account import Account as EthAccount
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted

from escrow_migrator.core.errors import (
    ContractCallError,
    LedgerClientError,
    MigrationError,
)
from escrow_migrator.core.retry import RetryConfig, call_with_retry, wrap_external_error
from escrow_migrator.domain.models import Amount, BlockRef, TxResult
from escrow_migrator.integrations.chain.abi import (
    LEGACY_ESCROW_ABI,
    SUCCESSOR_ESCROW_ABI,
)
from escrow_migrator.integrations.chain.transactions import TransactionRunner

log = structlog.get_logger()

DEFAULT_GAS_LIMIT = 10_000_000
DEFAULT_GAS_PRICE_GWEI = 1.0
DEFAULT_CONFIRMATION_TIMEOUT = 600.0


class Ledger(str, Enum):
    """Which escrow contract a call targets."""

    LEGACY = "legacy"
    SUCCESSOR = "successor"


class LedgerClient:
    """Client for the legacy and successor escrow contracts.

    Uses web3.py; every blocking call runs in a small thread pool so the
    pipeline can await it and overlap the few reads that are independent.

    Transactions are signed locally when a private key is given. Without
    one, ``sender`` must name an account the node manages (an unlocked
    account on a local fork) and ``eth_sendTransaction`` is used.
    """

    def __init__(
        self,
        rpc_url: str,
        legacy_address: str,
        successor_address: str,
        private_key: Optional[str] = None,
        sender: Optional[str] = None,
        gas_price_gwei: float = DEFAULT_GAS_PRICE_GWEI,
        gas_limit: int = DEFAULT_GAS_LIMIT,
        confirmation_timeout: float = DEFAULT_CONFIRMATION_TIMEOUT,
        retry_config: Optional[RetryConfig] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        """Initialize the ledger client.

        Args:
            rpc_url: JSON-RPC endpoint URL.
            legacy_address: Legacy escrow contract address.
            successor_address: Successor escrow contract address.
            private_key: Key used to sign migration transactions.
            sender: Node-managed account used when no private key is given.
            gas_price_gwei: Fixed gas price for migration transactions.
            gas_limit: Fixed gas limit for migration transactions.
            confirmation_timeout: Seconds to wait for a receipt.
            retry_config: Retry policy for read calls.
            executor: Optional thread pool for async execution.
        """
        self._rpc_url = rpc_url
        self._legacy_address = legacy_address
        self._successor_address = successor_address
        self._private_key = private_key
        self._sender = sender
        self._gas_price_wei = Web3.to_wei(gas_price_gwei, "gwei")
        self._gas_limit = gas_limit
        self._confirmation_timeout = confirmation_timeout
        self._retry = retry_config or RetryConfig()
        self._executor = executor or ThreadPoolExecutor(max_workers=2)
        self._log = log.bind(component="ledger_client")

        self._w3: Optional[Web3] = None
        self._account = None
        self._contracts: dict[Ledger, Any] = {}
        self._connected = False
        self._transactions = TransactionRunner(self, confirmation_timeout)

    @property
    def address(self) -> Optional[str]:
        """Address transactions are sent from."""
        if self._account is not None:
            return self._account.address
        return self._sender

    @property
    def is_connected(self) -> bool:
        """Whether connected to RPC."""
        return self._connected and self._w3 is not None

    @property
    def confirmation_timeout(self) -> float:
        return self._confirmation_timeout

    async def connect(self) -> None:
        """Connect to the RPC endpoint and bind both contracts."""
        if self._connected:
            return

        self._w3 = Web3(Web3.HTTPProvider(self._rpc_url))

        if not await self._run_sync(lambda: self._w3.is_connected()):
            self._w3 = None
            raise LedgerClientError(f"Failed to connect to {self._rpc_url}")

        if self._private_key:
            self._account = EthAccount.from_key(self._private_key)
        elif self._sender:
            self._sender = Web3.to_checksum_address(self._sender)

        self._contracts = {
            Ledger.LEGACY: self._w3.eth.contract(
                address=Web3.to_checksum_address(self._legacy_address),
                abi=LEGACY_ESCROW_ABI,
            ),
            Ledger.SUCCESSOR: self._w3.eth.contract(
                address=Web3.to_checksum_address(self._successor_address),
                abi=SUCCESSOR_ESCROW_ABI,
            ),
        }

        self._connected = True
        self._log.info(
            "ledger_connected",
            rpc=self._rpc_url,
            sender=self.address,
            legacy=self._contracts[Ledger.LEGACY].address,
            successor=self._contracts[Ledger.SUCCESSOR].address,
        )

    async def close(self) -> None:
        """Close the client."""
        self._w3 = None
        self._account = None
        self._contracts = {}
        self._connected = False

    async def __aenter__(self) -> "LedgerClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _run_sync(self, func, *args, **kwargs):
        """Run a synchronous function in the thread pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor,
            lambda: func(*args, **kwargs)
        )

    def _ensure_connected(self) -> None:
        if not self._connected:
            raise LedgerClientError("Client not connected. Call connect() first.")

    def contract(self, ledger: Ledger):
        """Bound web3 contract for ``ledger``."""
        self._ensure_connected()
        return self._contracts[ledger]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _read_once(self, ledger: Ledger, fn_name: str, *args: Any) -> Any:
        contract = self.contract(ledger)
        try:
            fn = getattr(contract.functions, fn_name)(*args)
            return await self._run_sync(fn.call)
        except ContractLogicError as e:
            raise ContractCallError(f"{ledger.value}.{fn_name} reverted", cause=e)
        except MigrationError:
            raise
        except Exception as e:
            raise wrap_external_error(e, f"{ledger.value}.{fn_name}")

    async def read(self, ledger: Ledger, fn_name: str, *args: Any) -> Any:
        """Call a view function, retrying transient provider errors."""
        return await call_with_retry(
            self._retry,
            self._read_once,
            ledger,
            fn_name,
            *args,
            log_context={"ledger": ledger.value, "call": fn_name},
        )

    async def total_escrowed_account_balance(self, ledger: Ledger, address: str) -> Amount:
        return int(await self.read(ledger, "totalEscrowedAccountBalance", address))

    async def total_vested_account_balance(self, address: str) -> Amount:
        return int(await self.read(Ledger.LEGACY, "totalVestedAccountBalance", address))

    async def num_vesting_entries(self, address: str) -> int:
        return int(await self.read(Ledger.SUCCESSOR, "numVestingEntries", address))

    async def check_account_schedule(self, address: str) -> list[int]:
        """Legacy schedule as a flat interleaved [timestamp, amount, ...] list."""
        schedule = await self.read(Ledger.LEGACY, "checkAccountSchedule", address)
        return [int(v) for v in schedule]

    async def migrate_entries_threshold_amount(self) -> Amount:
        return int(await self.read(Ledger.SUCCESSOR, "migrateEntriesThresholdAmount"))

    async def total_escrowed_balance(self, ledger: Ledger) -> Amount:
        return int(await self.read(ledger, "totalEscrowedBalance"))

    async def get_block_number(self) -> int:
        self._ensure_connected()
        return await call_with_retry(
            self._retry, self._guarded, lambda: self._w3.eth.block_number, "eth_blockNumber"
        )

    async def get_latest_block(self) -> BlockRef:
        """Number and timestamp of the latest block."""
        self._ensure_connected()
        block = await call_with_retry(
            self._retry,
            self._guarded,
            lambda: self._w3.eth.get_block("latest"),
            "eth_getBlockByNumber",
        )
        return BlockRef(number=int(block["number"]), timestamp=int(block["timestamp"]))

    async def get_logs(
        self,
        ledger: Ledger,
        event_name: str,
        from_block: int,
        to_block: int,
    ) -> list[Any]:
        """Decoded logs for ``event_name`` in an inclusive block range."""
        contract = self.contract(ledger)
        event = getattr(contract.events, event_name)()
        return await call_with_retry(
            self._retry,
            self._guarded,
            lambda: event.get_logs(from_block=from_block, to_block=to_block),
            f"{ledger.value}.{event_name}.get_logs",
            log_context={"from_block": from_block, "to_block": to_block},
        )

    async def _guarded(self, func, context: str) -> Any:
        try:
            return await self._run_sync(func)
        except MigrationError:
            raise
        except Exception as e:
            raise wrap_external_error(e, context)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def build_call(self, fn_name: str, *args: Any):
        """Stage a state-mutating successor call without sending it."""
        contract = self.contract(Ledger.SUCCESSOR)
        return getattr(contract.functions, fn_name)(*args)

    async def send_call(self, call) -> str:
        """Sign and send a staged call. Returns the transaction hash.

        Raises:
            LedgerClientError: If no sender is configured.
            ContractCallError: If the node rejects the call outright.
            TransientError / PermanentError: For provider failures.
        """
        self._ensure_connected()
        sender = self.address
        if sender is None:
            raise LedgerClientError("No private key or sender configured for transactions")

        params = {
            "from": sender,
            "gas": self._gas_limit,
            "gasPrice": self._gas_price_wei,
        }

        try:
            if self._account is not None:
                nonce = await self._run_sync(
                    lambda: self._w3.eth.get_transaction_count(sender, "pending")
                )
                chain_id = await self._run_sync(lambda: self._w3.eth.chain_id)
                tx = await self._run_sync(
                    lambda: call.build_transaction(
                        {**params, "nonce": nonce, "chainId": chain_id}
                    )
                )
                signed = self._account.sign_transaction(tx)
                tx_hash = await self._run_sync(
                    lambda: self._w3.eth.send_raw_transaction(signed.raw_transaction)
                )
            else:
                tx_hash = await self._run_sync(lambda: call.transact(params))
        except ContractLogicError as e:
            raise ContractCallError(f"{call.fn_name} rejected", cause=e)
        except Exception as e:
            raise wrap_external_error(e, f"send {call.fn_name}")

        return Web3.to_hex(tx_hash)

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> Optional[dict]:
        """Block until the transaction is mined, or return None on timeout."""
        self._ensure_connected()
        try:
            receipt = await self._run_sync(
                lambda: self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
            )
        except TimeExhausted:
            return None
        return dict(receipt)

    async def revert_reason(self, call, block_number: int) -> Optional[str]:
        """Replay a reverted call at its block to recover the revert message."""
        self._ensure_connected()
        try:
            await self._run_sync(
                lambda: call.call({"from": self.address}, block_identifier=block_number)
            )
        except ContractLogicError as e:
            return getattr(e, "message", None) or str(e)
        except Exception as e:
            self._log.debug("revert_reason_unavailable", error=str(e))
        return None

    async def migrate_account_escrow_balances(
        self,
        addresses: Sequence[str],
        balances: Sequence[Amount],
        vested: Sequence[Amount],
    ) -> TxResult:
        """Submit one migrateAccountEscrowBalances call and wait for the outcome."""
        call = self.build_call(
            "migrateAccountEscrowBalances", list(addresses), list(balances), list(vested)
        )
        return await self._transactions.execute(call, label="migrateAccountEscrowBalances")

    async def import_vesting_schedule(
        self,
        addresses: Sequence[str],
        amounts: Sequence[Amount],
    ) -> TxResult:
        """Submit one importVestingSchedule call and wait for the outcome."""
        call = self.build_call("importVestingSchedule", list(addresses), list(amounts))
        return await self._transactions.execute(call, label="importVestingSchedule")
