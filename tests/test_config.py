import pytest
from yieldsync.allocator import AllocatorConfig
from yieldsync.config import Settings, YieldSyncConfig, load_config
from yieldsync.fees import FeeConfig
from yieldsync.vault import VaultConfig

CONFIG_YAML = """
vault:
  address: yield-vault
  fee_collector: treasury
  min_deposit: 10
  max_total_assets: 1000000
  auto_compound: false
  harvest_roles: [keeper]
allocator:
  admins: [ops]
  max_apy_bps: 50000
  max_pool_allocation_bps: 5000
  rebalance_threshold_bps: 150
  min_rebalance_interval_seconds: 3600
fees:
  policy: yield_scaled
  base_rate_bps: 1200
  min_rate_bps: 500
  max_rate_bps: 2500
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "yieldsync.yaml"
    path.write_text(CONFIG_YAML)
    return path


class TestLoadConfig:
    def test_all_sections(self, config_file):
        config = load_config(str(config_file))

        assert config.vault.address == "yield-vault"
        assert config.vault.fee_collector == "treasury"
        assert config.vault.max_total_assets == 1_000_000
        assert config.vault.auto_compound is False
        assert config.vault.harvest_roles == ("keeper",)
        assert config.allocator.admins == ("ops",)
        assert config.allocator.max_pool_allocation_bps == 5_000
        assert config.allocator.min_rebalance_interval_seconds == 3600.0
        assert config.fees.policy == "yield_scaled"
        assert config.fees.max_rate_bps == 2_500

    def test_component_from_yaml(self, config_file):
        assert VaultConfig.from_yaml(str(config_file)).min_deposit == 10
        assert AllocatorConfig.from_yaml(str(config_file)).rebalance_threshold_bps == 150
        assert FeeConfig.from_yaml(str(config_file)).base_rate_bps == 1_200

    def test_missing_sections_use_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_config(str(path)) == YieldSyncConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))
        with pytest.raises(FileNotFoundError):
            VaultConfig.from_yaml(str(tmp_path / "nope.yaml"))

    def test_path_from_environment(self, config_file, monkeypatch):
        monkeypatch.setenv("YIELDSYNC_CONFIG_PATH", str(config_file))

        assert load_config().vault.address == "yield-vault"

    def test_defaults_without_path(self, monkeypatch, tmp_path):
        monkeypatch.delenv("YIELDSYNC_CONFIG_PATH", raising=False)
        monkeypatch.chdir(tmp_path)

        assert load_config() == YieldSyncConfig()


class TestSettings:
    def test_env_prefix(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("YIELDSYNC_LOG_LEVEL", "DEBUG")

        assert Settings().log_level == "DEBUG"


class TestValidation:
    def test_vault_min_deposit(self):
        with pytest.raises(ValueError):
            VaultConfig(min_deposit=0)

    def test_vault_cap(self):
        with pytest.raises(ValueError):
            VaultConfig(max_total_assets=0)

    def test_allocator_concentration(self):
        with pytest.raises(ValueError):
            AllocatorConfig(max_pool_allocation_bps=0)

    def test_allocator_threshold(self):
        with pytest.raises(ValueError):
            AllocatorConfig(rebalance_threshold_bps=-1)
