"""Escrow Migrator - Entry Point

Usage:
    python -m escrow_migrator [migrate] [--network NAME] [--account-json PATH] [--dry-run]
    python -m escrow_migrator inspect ARTIFACT

Commands:
    migrate - Run the migration (default)
    inspect - Summarize a migration artifact
    version - Show version

Examples:
    python -m escrow_migrator --network kovan --dry-run
    python -m escrow_migrator --network mainnet --account-json accounts.json
    python -m escrow_migrator --use-fork --network mainnet --account-json accounts.json
    python -m escrow_migrator inspect rewards-out-mainnet-1700000000.json
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from escrow_migrator import __version__

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_INTERRUPTED = 130


def add_migrate_arguments(parser: argparse.ArgumentParser) -> None:
    """Options shared by the bare invocation and the ``migrate`` command."""
    parser.add_argument(
        "--config",
        type=Path,
        default=argparse.SUPPRESS,
        help="Path to configuration file (TOML)",
    )
    parser.add_argument(
        "--network",
        "-n",
        default=argparse.SUPPRESS,
        help="Network to run on (mainnet, kovan, ...)",
    )
    parser.add_argument(
        "--account-json",
        "-a",
        type=Path,
        default=argparse.SUPPRESS,
        help="JSON list of accounts to migrate (required on mainnet)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_const",
        const=True,
        default=argparse.SUPPRESS,
        help="Compute and record batches without sending transactions",
    )
    parser.add_argument(
        "--live",
        dest="dry_run",
        action="store_const",
        const=False,
        default=argparse.SUPPRESS,
        help="Send transactions (overrides dry_run in config)",
    )
    parser.add_argument(
        "--provider-url",
        "-p",
        default=argparse.SUPPRESS,
        help="JSON-RPC endpoint (defaults to PROVIDER_URL)",
    )
    parser.add_argument(
        "--private-key",
        "-k",
        default=argparse.SUPPRESS,
        help="Signing key (defaults to PRIVATE_KEY)",
    )
    parser.add_argument(
        "--gas-price",
        "-g",
        type=float,
        default=argparse.SUPPRESS,
        help="Gas price in gwei",
    )
    parser.add_argument(
        "--use-fork",
        "-f",
        action="store_const",
        const=True,
        default=argparse.SUPPRESS,
        help="Target a local fork instead of the configured provider",
    )
    parser.add_argument(
        "--migration-batch-size",
        type=int,
        default=argparse.SUPPRESS,
        help="Accounts per migrateAccountEscrowBalances call",
    )
    parser.add_argument(
        "--import-batch-size",
        type=int,
        default=argparse.SUPPRESS,
        help="Entries per importVestingSchedule call",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=argparse.SUPPRESS,
        help="Directory for the rewards-out artifact",
    )
    parser.add_argument(
        "--resume",
        type=Path,
        default=argparse.SUPPRESS,
        help="Carry the records of a prior artifact forward",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=argparse.SUPPRESS,
        help="Log level",
    )
    parser.add_argument(
        "--log-json",
        action="store_const",
        const=True,
        default=argparse.SUPPRESS,
        help="Emit JSON log lines",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=argparse.SUPPRESS,
        help="Also append log lines to this file",
    )


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="escrow-migrator",
        description="Migrate reward escrow balances from the legacy contract to its successor",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"escrow-migrator {__version__}",
    )
    add_migrate_arguments(parser)

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Migrate command (default)
    migrate = subparsers.add_parser("migrate", help="Run the migration")
    add_migrate_arguments(migrate)

    # Inspect command
    inspect = subparsers.add_parser("inspect", help="Summarize a migration artifact")
    inspect.add_argument("artifact", type=Path, help="Path to a rewards-out JSON file")

    # Version command
    subparsers.add_parser("version", help="Show version")

    return parser.parse_args(argv)


def find_config_file(specified: Optional[Path]) -> Optional[Path]:
    """Find configuration file."""
    if specified and specified.exists():
        return specified

    search_paths = [
        Path("config/default.toml"),
        Path("escrow_migrator.toml"),
    ]

    for path in search_paths:
        if path.exists():
            return path

    return None


# Namespace attribute -> config key
CLI_OVERRIDES = {
    "network": "migration.network",
    "account_json": "migration.account_json",
    "dry_run": "migration.dry_run",
    "migration_batch_size": "migration.migration_batch_size",
    "import_batch_size": "migration.import_batch_size",
    "output_dir": "migration.output_dir",
    "resume": "migration.resume_from",
    "log_level": "migration.log_level",
    "log_json": "migration.log_json",
    "log_file": "migration.log_file",
    "provider_url": "ledger.provider_url",
    "private_key": "ledger.private_key",
    "gas_price": "ledger.gas_price_gwei",
    "use_fork": "ledger.use_fork",
}


def apply_overrides(config, args: argparse.Namespace) -> None:
    """Copy command-line values onto the config."""
    for attr, key in CLI_OVERRIDES.items():
        value = getattr(args, attr, None)
        if isinstance(value, Path):
            value = str(value)
        config.override(key, value)


async def run_migration(args: argparse.Namespace) -> int:
    """Run the migration pipeline."""
    import structlog

    from escrow_migrator.core.config import ConfigManager
    from escrow_migrator.core.errors import MigrationError, MigrationInterrupted
    from escrow_migrator.core.logging import bind_run_context, setup_logging
    from escrow_migrator.core.shutdown import InterruptGuard
    from escrow_migrator.integrations.chain.client import LedgerClient
    from escrow_migrator.integrations.chain.events import EventSource
    from escrow_migrator.services.pipeline import MigrationPipeline
    from escrow_migrator.settings import MigrationSettings

    config_path = find_config_file(getattr(args, "config", None))
    try:
        config = ConfigManager(config_path) if config_path else ConfigManager()
    except MigrationError as e:
        print(f"Cannot load configuration: {e}", file=sys.stderr)
        return EXIT_FATAL
    apply_overrides(config, args)

    setup_logging(
        level=config.get("migration.log_level", "INFO"),
        json_output=config.get_bool("migration.log_json", False),
        log_file=config.get("migration.log_file"),
    )
    log = structlog.get_logger()

    try:
        settings = MigrationSettings.from_config(config)
    except MigrationError as e:
        log.error("fatal_error", error=str(e), error_type=type(e).__name__)
        return EXIT_FATAL

    bind_run_context(settings.network, settings.dry_run)
    log.info(
        "starting_escrow_migrator",
        version=__version__,
        config=str(config_path) if config_path else "defaults",
        network_source=config.source("migration.network") or "default",
    )

    guard = InterruptGuard()
    guard.install_signal_handlers()
    pipeline: Optional[MigrationPipeline] = None
    try:
        settings.validate_for_ledger()
        client = LedgerClient(
            rpc_url=settings.provider_url,
            legacy_address=settings.legacy_address,
            successor_address=settings.successor_address,
            private_key=settings.private_key,
            sender=settings.sender,
            gas_price_gwei=settings.gas_price_gwei,
            gas_limit=settings.gas_limit,
            confirmation_timeout=settings.confirmation_timeout,
            retry_config=settings.retry,
        )
        events = EventSource(client, chunk_size=settings.events_chunk_size)
        pipeline = MigrationPipeline(settings, client, event_source=events, guard=guard)

        async with client:
            result = await pipeline.run()

        print(format_summary(result, pipeline.artifact_path))
        return EXIT_OK
    except MigrationInterrupted as e:
        log.warning(
            "migration_interrupted",
            reason=str(e),
            artifact=str(pipeline.artifact_path) if pipeline else None,
        )
        return EXIT_INTERRUPTED
    except MigrationError as e:
        log.error(
            "fatal_error",
            error=str(e),
            error_type=type(e).__name__,
            artifact=str(pipeline.artifact_path) if pipeline and pipeline.artifact_path else None,
        )
        return EXIT_FATAL
    finally:
        guard.remove_signal_handlers()


def format_summary(result, path: Optional[Path] = None) -> str:
    """Human-readable summary of a MigrationResult."""
    from escrow_migrator.domain.models import format_units

    imported_total = sum(e.amount for e in result.imported_vested_entries)
    lines = [
        f"Network:            {result.network}",
        f"Started at:         {result.started_at}",
        f"Dry run:            {result.dry_run}",
        f"Migrated accounts:  {len(result.migrated_accounts)} "
        f"({format_units(result.migrated_total)} escrowed)",
        f"Skipped accounts:   {len(result.skipped_accounts)}",
        f"Imported entries:   {len(result.imported_vested_entries)} "
        f"({format_units(imported_total)} vested)",
    ]
    if path is not None:
        lines.insert(0, f"Artifact:           {path}")
    if result.reference_block is not None:
        lines.append(
            f"Reference block:    {result.reference_block.number} "
            f"(timestamp {result.reference_block.timestamp})"
        )
    report = result.reconciliation
    if report is None:
        lines.append("Reconciliation:     not run")
    elif report.matched:
        lines.append(f"Reconciliation:     match ({report.legacy_total})")
    else:
        lines.append(
            f"Reconciliation:     MISMATCH legacy={report.legacy_total} "
            f"successor={report.successor_total}"
        )
    return "\n".join(lines)


def inspect_artifact(path: Path) -> int:
    """Print a summary of a prior run's artifact."""
    from escrow_migrator.core.errors import ArtifactError
    from escrow_migrator.services.artifact import ArtifactStore

    try:
        result = ArtifactStore.load(path)
    except ArtifactError as e:
        print(f"Cannot read artifact: {e}", file=sys.stderr)
        return EXIT_FATAL

    print(format_summary(result, path))
    return EXIT_OK


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    if args.command == "version":
        print(f"escrow-migrator {__version__}")
        return EXIT_OK

    if args.command == "inspect":
        return inspect_artifact(args.artifact)

    # Default: run the migration
    try:
        return asyncio.run(run_migration(args))
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
