"""Account discovery - builds the candidate account set.

Two modes:
- Static list: a JSON array of account objects (``address`` plus optional
  ``balanceOf``/``vestedBalanceOf``) or of bare address strings. Mandatory
  on networks whose history cannot be replayed locally.
- Event replay: every ``VestingEntryCreated`` on the legacy contract,
  reduced to one record per beneficiary.
"""

import json
from pathlib import Path
from typing import Any, Optional, Sequence, Union

import structlog
from web3 import Web3

from escrow_migrator.core.errors import ConfigurationError
from escrow_migrator.domain.models import AccountRecord, parse_amount
from escrow_migrator.integrations.chain.abi import VESTING_ENTRY_CREATED
from escrow_migrator.integrations.chain.client import Ledger
from escrow_migrator.integrations.chain.events import EventSource

log = structlog.get_logger()

# Field names used by account dumps, newest first
_BALANCE_KEYS = ("balanceOf", "balance")
_VESTED_KEYS = ("vestedBalanceOf", "vested")


def _normalize_address(value: Any, where: str) -> str:
    if not isinstance(value, str) or not Web3.is_address(value):
        raise ConfigurationError(f"Invalid address {value!r} in {where}")
    return Web3.to_checksum_address(value)


def _first_present(entry: dict[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        if entry.get(key) is not None:
            return entry[key]
    return None


def load_account_list(path: Path) -> list[AccountRecord]:
    """Parse a static account list file.

    Raises:
        ConfigurationError: If the file is missing, unreadable, or malformed.
    """
    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Account list not found: {path}", cause=e)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Account list is not valid JSON: {path}", cause=e)

    if not isinstance(raw, list):
        raise ConfigurationError(f"Account list must be a JSON array: {path}")

    records: list[AccountRecord] = []
    for i, entry in enumerate(raw):
        where = f"{path.name}[{i}]"
        if isinstance(entry, str):
            records.append(AccountRecord(address=_normalize_address(entry, where)))
            continue
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Unexpected entry in {where}: {entry!r}")

        address = _normalize_address(entry.get("address"), where)
        balance = _first_present(entry, _BALANCE_KEYS)
        vested = _first_present(entry, _VESTED_KEYS)
        try:
            records.append(
                AccountRecord(
                    address=address,
                    balance=parse_amount(balance, "balanceOf") if balance is not None else None,
                    vested=parse_amount(vested, "vestedBalanceOf") if vested is not None else None,
                )
            )
        except ValueError as e:
            raise ConfigurationError(f"Bad amount in {where}: {e}", cause=e)
    return records


def dedupe(records: Sequence[AccountRecord]) -> list[AccountRecord]:
    """Drop repeated addresses, keeping the first occurrence and input order."""
    seen: set[str] = set()
    unique: list[AccountRecord] = []
    for record in records:
        if record.address in seen:
            continue
        seen.add(record.address)
        unique.append(record)
    return unique


class AccountDiscoverer:
    """Produces the deduplicated candidate accounts for a run."""

    def __init__(
        self,
        network: str,
        account_json: Optional[Path] = None,
        event_source: Optional[EventSource] = None,
        static_list_networks: Sequence[str] = ("mainnet",),
        from_block: Union[int, str] = 0,
        to_block: Union[int, str] = "latest",
        beneficiary_arg: str = "beneficiary",
    ):
        self._network = network
        self._account_json = account_json
        self._event_source = event_source
        self._static_list_networks = tuple(static_list_networks)
        self._from_block = from_block
        self._to_block = to_block
        self._beneficiary_arg = beneficiary_arg
        self._log = log.bind(component="account_discoverer", network=network)

    @property
    def uses_static_list(self) -> bool:
        return self._account_json is not None

    def check_inputs(self) -> None:
        """Fail fast, before any ledger interaction, on missing inputs.

        Raises:
            ConfigurationError: If the network needs a static list and none
                was given, or no source is available at all.
        """
        if self._account_json is not None:
            return
        if self._network in self._static_list_networks:
            raise ConfigurationError(
                f"An account JSON list is required on {self._network}"
            )
        if self._event_source is None:
            raise ConfigurationError(
                "No account source: provide an account JSON list or an event source"
            )

    async def discover(self) -> list[AccountRecord]:
        """Return candidate records, one per unique address."""
        self.check_inputs()

        if self._account_json is not None:
            records = load_account_list(self._account_json)
            unique = dedupe(records)
            if len(unique) != len(records):
                self._log.warning(
                    "duplicate_accounts_in_list",
                    duplicates=len(records) - len(unique),
                )
            self._log.info("accounts_loaded", count=len(unique), path=str(self._account_json))
            return unique

        unique = await self._replay_events()
        self._log.info("accounts_found", count=len(unique))
        return unique

    async def _replay_events(self) -> list[AccountRecord]:
        seen: dict[str, None] = {}
        async for event in self._event_source.iter_events(
            Ledger.LEGACY,
            VESTING_ENTRY_CREATED,
            from_block=self._from_block,
            to_block=self._to_block,
        ):
            address = self._beneficiary(event)
            seen.setdefault(Web3.to_checksum_address(address), None)
        return [AccountRecord(address=address) for address in seen]

    def _beneficiary(self, event: Any) -> str:
        args = event["args"]
        if self._beneficiary_arg in args:
            return args[self._beneficiary_arg]
        # Older ABIs name the argument differently; it is always first
        return next(iter(args.values()))
