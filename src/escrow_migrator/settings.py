"""Run settings for a migration.

Settings are loaded from ConfigManager at startup. CLI flags are applied to
the ConfigManager as overrides before ``from_config`` runs, so this is the
single place that knows every key and default.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Union

from escrow_migrator.core.config import ConfigManager
from escrow_migrator.core.errors import ConfigurationError
from escrow_migrator.core.retry import RetryConfig
from escrow_migrator.domain.batching import IMPORT_BATCH_SIZE, MIGRATION_BATCH_SIZE

DEFAULT_FORK_URL = "http://localhost:8545"


@dataclass(frozen=True)
class MigrationSettings:
    """Configuration parameters for one migration run.

    Attributes:
        network: Network name; keys the artifact filename and contract lookup.
        dry_run: Compute and record batches without sending transactions.
        migration_batch_size: Accounts per migrateAccountEscrowBalances call.
        import_batch_size: Entries per importVestingSchedule call.
        account_json: Static account list (required on static_list_networks).
        static_list_networks: Networks where event replay is not allowed.
        output_dir: Directory for the checkpoint artifact.
        resume_from: Prior artifact whose records are carried forward.
        provider_url: JSON-RPC endpoint.
        private_key: Signing key for migration transactions.
        sender: Node-managed sender used on a fork without a key.
        legacy_address: Legacy escrow contract.
        successor_address: Successor escrow contract.
        gas_price_gwei: Fixed gas price for migration transactions.
        gas_limit: Fixed gas limit for migration transactions.
        confirmation_timeout: Seconds to wait for each receipt.
        events_from_block: First block scanned for VestingEntryCreated.
        events_to_block: Last block scanned ("latest" or a number).
        events_chunk_size: Block span per eth_getLogs request.
        retry: Backoff policy for ledger reads.
    """

    network: str = "mainnet"
    dry_run: bool = True
    migration_batch_size: int = MIGRATION_BATCH_SIZE
    import_batch_size: int = IMPORT_BATCH_SIZE
    account_json: Optional[Path] = None
    static_list_networks: tuple[str, ...] = ("mainnet",)
    output_dir: Path = Path(".")
    resume_from: Optional[Path] = None
    provider_url: Optional[str] = None
    private_key: Optional[str] = field(default=None, repr=False)
    sender: Optional[str] = None
    legacy_address: Optional[str] = None
    successor_address: Optional[str] = None
    gas_price_gwei: float = 1.0
    gas_limit: int = 10_000_000
    confirmation_timeout: float = 600.0
    events_from_block: int = 0
    events_to_block: Union[int, str] = "latest"
    events_chunk_size: int = 100_000
    retry: RetryConfig = field(default_factory=RetryConfig)

    @property
    def requires_static_list(self) -> bool:
        return self.network in self.static_list_networks

    @classmethod
    def from_config(
        cls,
        config: ConfigManager,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "MigrationSettings":
        """Create MigrationSettings from ConfigManager.

        Contract addresses and the provider may be set per network under
        ``[networks.<name>]``; those win over the ``[ledger]`` defaults.

        Raises:
            ConfigurationError: If a batch size is not positive.
        """
        env = os.environ if environ is None else environ
        network = str(config.get("migration.network", "mainnet")).lower()
        use_fork = config.get_bool("ledger.use_fork", False)

        def ledger_value(key: str, default=None):
            value = config.get(f"networks.{network}.{key}")
            if value is None:
                value = config.get(f"ledger.{key}", default)
            return value

        provider_url = resolve_provider_url(
            network=network,
            provider_url=ledger_value("provider_url") or None,
            use_fork=use_fork,
            fork_url=config.get("ledger.fork_url", DEFAULT_FORK_URL),
            environ=env,
        )

        private_key = config.get("ledger.private_key") or env.get("PRIVATE_KEY") or None

        account_json = config.get("migration.account_json")
        resume_from = config.get("migration.resume_from")

        settings = cls(
            network=network,
            dry_run=config.get_bool("migration.dry_run", True),
            migration_batch_size=config.get_int(
                "migration.migration_batch_size", MIGRATION_BATCH_SIZE
            ),
            import_batch_size=config.get_int(
                "migration.import_batch_size", IMPORT_BATCH_SIZE
            ),
            account_json=Path(account_json) if account_json else None,
            static_list_networks=tuple(
                str(n).lower()
                for n in config.get_list("migration.static_list_networks", ["mainnet"])
            ),
            output_dir=Path(config.get("migration.output_dir", ".")),
            resume_from=Path(resume_from) if resume_from else None,
            provider_url=provider_url,
            private_key=private_key,
            sender=ledger_value("sender") or None,
            legacy_address=ledger_value("legacy_address") or None,
            successor_address=ledger_value("successor_address") or None,
            gas_price_gwei=config.get_float("ledger.gas_price_gwei", 1.0),
            gas_limit=config.get_int("ledger.gas_limit", 10_000_000),
            confirmation_timeout=config.get_float(
                "ledger.confirmation_timeout_seconds", 600.0
            ),
            events_from_block=config.get_int("events.from_block", 0),
            events_to_block=_block_tag(config.get("events.to_block", "latest")),
            events_chunk_size=config.get_int("events.chunk_size", 100_000),
            retry=RetryConfig.from_config(config),
        )
        settings.validate_batch_sizes()
        return settings

    def validate_batch_sizes(self) -> None:
        """Batch sizes must be positive and within the per-call ledger limits."""
        for name in ("migration_batch_size", "import_batch_size", "events_chunk_size"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")
        for name, limit in (
            ("migration_batch_size", MIGRATION_BATCH_SIZE),
            ("import_batch_size", IMPORT_BATCH_SIZE),
        ):
            if getattr(self, name) > limit:
                raise ConfigurationError(
                    f"{name} must be at most {limit}, got {getattr(self, name)}"
                )

    def validate_for_ledger(self) -> None:
        """Check everything a ledger connection needs.

        Raises:
            ConfigurationError: If the provider or a contract address is missing,
                or a live run has nobody to send from.
        """
        if not self.provider_url:
            raise ConfigurationError("Cannot set up a provider: no provider URL configured")
        if not self.legacy_address or not self.successor_address:
            raise ConfigurationError(
                f"Contract addresses for network '{self.network}' are not configured"
            )
        if not self.dry_run and not (self.private_key or self.sender):
            raise ConfigurationError(
                "A private key (or node-managed sender) is required unless --dry-run is set"
            )


def _block_tag(value) -> Union[int, str]:
    if isinstance(value, str) and not value.strip().isdigit():
        return value
    return int(value)


def resolve_provider_url(
    network: str,
    provider_url: Optional[str],
    use_fork: bool,
    fork_url: str,
    environ: Mapping[str, str],
) -> Optional[str]:
    """Pick the RPC endpoint.

    A local fork wins. Otherwise an explicit URL is used, falling back to
    ``PROVIDER_URL``; infura-style URLs carry a literal ``network``
    placeholder that is replaced by the network name.
    """
    if use_fork:
        return fork_url
    if provider_url:
        return provider_url
    env_url = environ.get("PROVIDER_URL")
    if not env_url:
        return None
    if "infura" in env_url:
        return env_url.replace("network", network)
    return env_url
