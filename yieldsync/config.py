"""Process settings and the component configuration bundle."""

from dataclasses import dataclass, field
from pathlib import Path

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict

from yieldsync.allocator.models import AllocatorConfig
from yieldsync.fees.models import FeeConfig
from yieldsync.vault.models import VaultConfig


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="YIELDSYNC_", env_file=".env", extra="ignore")

    # Logging
    log_level: str = "INFO"

    # Component configuration file (YAML with vault/allocator/fees sections)
    config_path: str | None = None


@dataclass(frozen=True)
class YieldSyncConfig:
    """Vault, allocator and fee configuration loaded together."""

    vault: VaultConfig = field(default_factory=VaultConfig)
    allocator: AllocatorConfig = field(default_factory=AllocatorConfig)
    fees: FeeConfig = field(default_factory=FeeConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "YieldSyncConfig":
        return cls(
            vault=VaultConfig.from_dict(data.get("vault", {})),
            allocator=AllocatorConfig.from_dict(data.get("allocator", {})),
            fees=FeeConfig.from_dict(data.get("fees", {})),
        )


def load_config(path: str | None = None) -> YieldSyncConfig:
    """Load configuration from a YAML file.

    Args:
        path: YAML file path. Falls back to Settings().config_path; when
            neither is set, defaults are returned.

    Raises:
        FileNotFoundError: the configured file does not exist
    """
    path = path or Settings().config_path
    if path is None:
        return YieldSyncConfig()

    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(file_path) as f:
        data = yaml.safe_load(f) or {}

    return YieldSyncConfig.from_dict(data)
