"""
Unit tests for ConfigManager and MigrationSettings.
"""
import pytest

from escrow_migrator.core.config import ConfigManager
from escrow_migrator.core.errors import ConfigurationError
from escrow_migrator.settings import MigrationSettings, resolve_provider_url


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(
        """
[migration]
network = "kovan"
dry_run = false
migration_batch_size = 100
static_list_networks = ["mainnet", "goerli"]

[ledger]
provider_url = "http://ledger:8545"
gas_price_gwei = 2
legacy_address = "0x0000000000000000000000000000000000000001"
successor_address = "0x0000000000000000000000000000000000000002"

[networks.mainnet]
legacy_address = "0x00000000000000000000000000000000000000aa"

[events]
to_block = "12345"
"""
    )
    return path


class TestConfigManager:
    """Tests for TOML + env + override layering."""

    def test_loads_toml(self, config_file):
        config = ConfigManager(config_file)

        assert config.get("migration.network") == "kovan"
        assert config.get_int("migration.migration_batch_size") == 100
        assert config.get_list("migration.static_list_networks") == ["mainnet", "goerli"]

    def test_missing_key_returns_default(self, config_file):
        config = ConfigManager(config_file)
        assert config.get("migration.nope", "fallback") == "fallback"

    def test_missing_file_is_empty(self, tmp_path):
        config = ConfigManager(tmp_path / "absent.toml")
        assert config.raw_data == {}

    def test_env_overrides_toml(self, config_file, monkeypatch):
        monkeypatch.setenv("ESCROW_MIGRATION_NETWORK", "mainnet")
        monkeypatch.setenv("ESCROW_LEDGER_GAS_PRICE_GWEI", "3.5")

        config = ConfigManager(config_file)

        assert config.get("migration.network") == "mainnet"
        assert config.get_float("ledger.gas_price_gwei") == 3.5

    def test_env_bool_and_list_parsing(self, monkeypatch):
        monkeypatch.setenv("ESCROW_MIGRATION_DRY_RUN", "false")
        monkeypatch.setenv("ESCROW_MIGRATION_STATIC_LIST_NETWORKS", "mainnet, optimism")

        config = ConfigManager()

        assert config.get_bool("migration.dry_run", True) is False
        assert config.get_list("migration.static_list_networks") == ["mainnet", "optimism"]

    def test_override_beats_env(self, monkeypatch):
        monkeypatch.setenv("ESCROW_MIGRATION_NETWORK", "kovan")
        config = ConfigManager()

        config.override("migration.network", "mainnet")

        assert config.get("migration.network") == "mainnet"

    def test_none_override_ignored(self, config_file):
        config = ConfigManager(config_file)
        config.override("migration.network", None)
        assert config.get("migration.network") == "kovan"

    def test_source_reports_layer(self, config_file):
        config = ConfigManager(config_file, environ={"ESCROW_LEDGER_GAS_LIMIT": "5"})
        config.override("migration.dry_run", True)

        assert config.source("migration.dry_run") == "override"
        assert config.source("ledger.gas_limit") == "env"
        assert config.source("migration.network") == "file"
        assert config.source("migration.nope") is None

    def test_numeric_env_flags_stay_numeric(self):
        config = ConfigManager(environ={"ESCROW_EVENTS_FROM_BLOCK": "1"})
        assert config.get("events.from_block") == 1

    def test_require(self, config_file):
        config = ConfigManager(config_file)

        assert config.require("ledger.provider_url") == "http://ledger:8545"
        with pytest.raises(ConfigurationError, match="ESCROW_LEDGER_PRIVATE_KEY"):
            config.require("ledger.private_key")

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "broken.toml"
        path.write_text("[migration\nnetwork = ")

        with pytest.raises(ConfigurationError, match="Invalid TOML"):
            ConfigManager(path)

    def test_bad_typed_values(self):
        config = ConfigManager(environ={"ESCROW_MIGRATION_DRY_RUN": "maybe"})
        config.override("ledger.gas_limit", "lots")

        with pytest.raises(ConfigurationError, match="boolean"):
            config.get_bool("migration.dry_run")
        with pytest.raises(ConfigurationError, match="integer"):
            config.get_int("ledger.gas_limit")


class TestResolveProviderUrl:
    """Tests for provider URL selection."""

    def test_fork_wins(self):
        url = resolve_provider_url("mainnet", "http://x", True, "http://localhost:8545", {})
        assert url == "http://localhost:8545"

    def test_explicit_url(self):
        assert resolve_provider_url("mainnet", "http://x", False, "", {}) == "http://x"

    def test_infura_placeholder_substituted(self):
        env = {"PROVIDER_URL": "https://network.infura.io/v3/key"}
        url = resolve_provider_url("kovan", None, False, "", env)
        assert url == "https://kovan.infura.io/v3/key"

    def test_plain_env_url_untouched(self):
        env = {"PROVIDER_URL": "https://rpc.example/network"}
        assert resolve_provider_url("kovan", None, False, "", env) == "https://rpc.example/network"

    def test_nothing_configured(self):
        assert resolve_provider_url("kovan", None, False, "", {}) is None


class TestMigrationSettings:
    """Tests for MigrationSettings.from_config."""

    def test_defaults(self):
        settings = MigrationSettings.from_config(ConfigManager(), environ={})

        assert settings.network == "mainnet"
        assert settings.dry_run is True
        assert settings.migration_batch_size == 450
        assert settings.import_batch_size == 350
        assert settings.requires_static_list is True
        assert settings.gas_limit == 10_000_000
        assert settings.events_to_block == "latest"
        assert settings.retry.max_attempts == 3

    def test_from_file(self, config_file):
        settings = MigrationSettings.from_config(ConfigManager(config_file), environ={})

        assert settings.network == "kovan"
        assert settings.dry_run is False
        assert settings.migration_batch_size == 100
        assert settings.provider_url == "http://ledger:8545"
        assert settings.gas_price_gwei == 2.0
        assert settings.events_to_block == 12345
        assert settings.requires_static_list is False

    def test_per_network_address_wins(self, config_file):
        config = ConfigManager(config_file)
        config.override("migration.network", "mainnet")

        settings = MigrationSettings.from_config(config, environ={})

        assert settings.legacy_address == "0x00000000000000000000000000000000000000aa"
        assert settings.successor_address == "0x0000000000000000000000000000000000000002"

    def test_private_key_from_environment(self):
        settings = MigrationSettings.from_config(
            ConfigManager(), environ={"PRIVATE_KEY": "0x" + "1" * 64}
        )
        assert settings.private_key == "0x" + "1" * 64
        assert "private_key" not in repr(settings)

    def test_use_fork(self):
        config = ConfigManager()
        config.override("ledger.use_fork", True)

        settings = MigrationSettings.from_config(config, environ={})

        assert settings.provider_url == "http://localhost:8545"

    def test_rejects_zero_batch_size(self):
        config = ConfigManager()
        config.override("migration.import_batch_size", 0)

        with pytest.raises(ConfigurationError, match="import_batch_size"):
            MigrationSettings.from_config(config, environ={})

    @pytest.mark.parametrize(
        "key,size",
        [("migration.migration_batch_size", 1000), ("migration.import_batch_size", 900)],
    )
    def test_rejects_batch_size_above_ledger_limit(self, key, size):
        config = ConfigManager(environ={})
        config.override(key, size)

        with pytest.raises(ConfigurationError, match="must be at most"):
            MigrationSettings.from_config(config, environ={})

    def test_accepts_batch_sizes_at_ledger_limit(self):
        config = ConfigManager(environ={})
        config.override("migration.migration_batch_size", 450)
        config.override("migration.import_batch_size", 350)

        settings = MigrationSettings.from_config(config, environ={})

        assert (settings.migration_batch_size, settings.import_batch_size) == (450, 350)

    def test_live_run_needs_signer(self, config_file):
        settings = MigrationSettings.from_config(ConfigManager(config_file), environ={})

        with pytest.raises(ConfigurationError, match="private key"):
            settings.validate_for_ledger()

    def test_missing_provider(self):
        settings = MigrationSettings(network="kovan", legacy_address="0x1", successor_address="0x2")

        with pytest.raises(ConfigurationError, match="provider"):
            settings.validate_for_ledger()
