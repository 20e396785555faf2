"""
Migration domain models.

These models represent accounts, batches, flattened vesting entries and the
persisted migration result. Amounts are always ``int`` token base units;
nothing here does float or Decimal arithmetic on them.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

# Token base units (wei-style). Arbitrary precision, never negative.
Amount = int

TOKEN_DECIMALS = 18


def parse_amount(value: Any, field_name: str = "amount") -> Amount:
    """Parse a ledger amount from JSON or RPC output.

    Accepts ints and base-10 integer strings ("1000", " 42 "). Floats,
    booleans and negative numbers are rejected so precision is never lost
    silently.

    Raises:
        ValueError: If the value is not a non-negative integer.
    """
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be an integer, got bool")
    if isinstance(value, int):
        amount = value
    elif isinstance(value, str) and value.strip().isdigit():
        amount = int(value.strip())
    else:
        raise ValueError(f"{field_name} must be an integer amount, got {value!r}")
    if amount < 0:
        raise ValueError(f"{field_name} must be non-negative, got {amount}")
    return amount


def format_units(amount: Amount, decimals: int = TOKEN_DECIMALS) -> str:
    """Render base units as a human-readable token amount (display only)."""
    return format(Decimal(amount).scaleb(-decimals).normalize(), "f")


@dataclass(frozen=True)
class AccountRecord:
    """A candidate account produced by discovery.

    Balances are only present when the static account list supplied them.
    """
    address: str
    balance: Optional[Amount] = None
    vested: Optional[Amount] = None

    @property
    def has_balances(self) -> bool:
        """Whether both legacy balances were supplied up front."""
        return self.balance is not None and self.vested is not None


@dataclass(frozen=True)
class Account:
    """A classified account. Immutable once classified within a run."""
    address: str
    legacy_balance: Amount
    legacy_vested: Amount
    already_migrated: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the artifact (amounts as decimal strings)."""
        return {
            "address": self.address,
            "balance": str(self.legacy_balance),
            "vested": str(self.legacy_vested),
            "alreadyMigrated": self.already_migrated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Account":
        """Deserialize an artifact entry.

        Raises:
            KeyError, ValueError: If a field is missing or malformed.
        """
        address = data["address"]
        if not isinstance(address, str) or not address:
            raise ValueError(f"address must be a non-empty string, got {address!r}")
        return cls(
            address=address,
            legacy_balance=parse_amount(data["balance"], "balance"),
            legacy_vested=parse_amount(data["vested"], "vested"),
            already_migrated=bool(data.get("alreadyMigrated", False)),
        )


@dataclass(frozen=True)
class FlattenedEntry:
    """Sum of an account's matured vesting entries, imported as one record."""
    address: str
    amount: Amount

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValueError(f"flattened amount must be positive, got {self.amount}")

    def to_dict(self) -> dict[str, Any]:
        return {"address": self.address, "amount": str(self.amount)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FlattenedEntry":
        address = data["address"]
        if not isinstance(address, str) or not address:
            raise ValueError(f"address must be a non-empty string, got {address!r}")
        return cls(address=address, amount=parse_amount(data["amount"]))


@dataclass(frozen=True)
class MigrationBatch:
    """A bounded, ordered slice of accounts submitted in one ledger call."""
    index: int
    accounts: tuple[Account, ...]

    def __len__(self) -> int:
        return len(self.accounts)

    @property
    def addresses(self) -> list[str]:
        return [a.address for a in self.accounts]

    @property
    def balances(self) -> list[Amount]:
        return [a.legacy_balance for a in self.accounts]

    @property
    def vested(self) -> list[Amount]:
        return [a.legacy_vested for a in self.accounts]


@dataclass(frozen=True)
class ImportBatch:
    """A bounded, ordered slice of flattened entries submitted in one ledger call."""
    index: int
    entries: tuple[FlattenedEntry, ...]

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def addresses(self) -> list[str]:
        return [e.address for e in self.entries]

    @property
    def amounts(self) -> list[Amount]:
        return [e.amount for e in self.entries]


@dataclass(frozen=True)
class BlockRef:
    """A block number and its timestamp (seconds since epoch)."""
    number: int
    timestamp: int


class TxStatus(str, Enum):
    """Lifecycle of a state-mutating ledger call."""
    STAGED = "staged"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


@dataclass
class TxResult:
    """Outcome of one pass through the transaction protocol.

    ``status`` is CONFIRMED or REJECTED, or SUBMITTED with ``timed_out`` set
    when the confirmation wait ran out before a receipt appeared.
    """
    status: TxStatus
    label: str
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    error: Optional[str] = None
    timed_out: bool = False

    @property
    def confirmed(self) -> bool:
        return self.status == TxStatus.CONFIRMED


class ReconciliationStatus(str, Enum):
    """Outcome of comparing legacy and successor totals."""
    MATCH = "match"
    MISMATCH = "mismatch"


@dataclass(frozen=True)
class ReconciliationReport:
    """Legacy vs successor total escrowed balance."""
    legacy_total: Amount
    successor_total: Amount
    dry_run: bool = False

    @property
    def status(self) -> ReconciliationStatus:
        if self.legacy_total == self.successor_total:
            return ReconciliationStatus.MATCH
        return ReconciliationStatus.MISMATCH

    @property
    def matched(self) -> bool:
        return self.status == ReconciliationStatus.MATCH

    @property
    def difference(self) -> int:
        """Successor minus legacy, in base units."""
        return self.successor_total - self.legacy_total

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "legacyTotal": str(self.legacy_total),
            "successorTotal": str(self.successor_total),
            "dryRun": self.dry_run,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReconciliationReport":
        return cls(
            legacy_total=parse_amount(data["legacyTotal"], "legacyTotal"),
            successor_total=parse_amount(data["successorTotal"], "successorTotal"),
            dry_run=bool(data.get("dryRun", False)),
        )


@dataclass
class MigrationResult:
    """Append-only record of a migration run, checkpointed after every batch.

    ``migrated_accounts`` and ``imported_vested_entries`` only ever grow.
    ``skipped_accounts`` holds accounts the successor already had, kept for
    audit.
    """
    network: str
    started_at: int
    dry_run: bool = False
    migrated_accounts: list[Account] = field(default_factory=list)
    imported_vested_entries: list[FlattenedEntry] = field(default_factory=list)
    skipped_accounts: list[Account] = field(default_factory=list)
    reference_block: Optional[BlockRef] = None
    reconciliation: Optional[ReconciliationReport] = None

    def record_migrated(self, batch: MigrationBatch) -> None:
        self.migrated_accounts.extend(batch.accounts)

    def record_imported(self, batch: ImportBatch) -> None:
        self.imported_vested_entries.extend(batch.entries)

    @property
    def migrated_total(self) -> Amount:
        """Sum of legacy balances over migrated accounts."""
        return sum(a.legacy_balance for a in self.migrated_accounts)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "network": self.network,
            "startedAt": self.started_at,
            "dryRun": self.dry_run,
            "migratedAccounts": [a.to_dict() for a in self.migrated_accounts],
            "importedVestedEntries": [e.to_dict() for e in self.imported_vested_entries],
            "skippedAccounts": [a.to_dict() for a in self.skipped_accounts],
        }
        if self.reference_block is not None:
            data["referenceBlock"] = self.reference_block.number
            data["referenceTimestamp"] = self.reference_block.timestamp
        if self.reconciliation is not None:
            data["reconciliation"] = self.reconciliation.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MigrationResult":
        """Deserialize a persisted artifact.

        Raises:
            KeyError, ValueError, TypeError: If the document does not match
                the artifact schema.
        """
        if not isinstance(data, dict):
            raise TypeError(f"artifact must be an object, got {type(data).__name__}")
        migrated = data["migratedAccounts"]
        imported = data["importedVestedEntries"]
        skipped = data.get("skippedAccounts", [])
        for name, value in (
            ("migratedAccounts", migrated),
            ("importedVestedEntries", imported),
            ("skippedAccounts", skipped),
        ):
            if not isinstance(value, list):
                raise TypeError(f"{name} must be a list")

        reference_block = None
        if data.get("referenceBlock") is not None:
            reference_block = BlockRef(
                number=int(data["referenceBlock"]),
                timestamp=int(data["referenceTimestamp"]),
            )

        reconciliation = None
        if data.get("reconciliation") is not None:
            reconciliation = ReconciliationReport.from_dict(data["reconciliation"])

        return cls(
            network=str(data.get("network", "unknown")),
            started_at=int(data.get("startedAt", 0)),
            dry_run=bool(data.get("dryRun", False)),
            migrated_accounts=[Account.from_dict(a) for a in migrated],
            imported_vested_entries=[FlattenedEntry.from_dict(e) for e in imported],
            skipped_accounts=[Account.from_dict(a) for a in skipped],
            reference_block=reference_block,
            reconciliation=reconciliation,
        )
