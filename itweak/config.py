"""Configuration management for iTweakSuite."""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from ruamel.yaml import YAML

DEFAULT_CONFIG_PATH = Path.home() / ".config/itweaksuite/config.yaml"


class ImageConfig(BaseModel):
    """Configuration for developer disk image acquisition."""

    releases_url: str = Field(
        default="https://api.github.com/repos/mspvirajpatel/Xcode_Developer_Disk_Images/releases",
        description="Release index endpoint (JSON array of objects with tag_name)"
    )
    download_base: str = Field(
        default="https://github.com/mspvirajpatel/Xcode_Developer_Disk_Images/releases/download",
        description="Base URL; archives live at {download_base}/{tag}/{tag}.zip"
    )
    payload_name: str = Field(default="DeveloperDiskImage.dmg", description="Image file inside a cache entry")
    request_timeout: int = Field(default=30, description="HTTP timeout in seconds")
    chunk_size: int = Field(default=64 * 1024, description="Download chunk size in bytes")
    extraction_dir: Optional[Path] = Field(
        default=None,
        description="Scratch directory for archive extraction (system temp dir if unset)"
    )


class ToolConfig(BaseModel):
    """Configuration for the external libimobiledevice tools."""

    tools_dir: Optional[Path] = Field(
        default=None,
        description="Directory holding the device tools (PATH is searched if unset)"
    )
    library_dir: Optional[Path] = Field(
        default=None,
        description="Shared library directory exported to the tools"
    )
    backup_generator: str = Field(
        default="itweak-backupgen",
        description="Executable that turns a staging directory into a device backup"
    )
    timeout: int = Field(default=60, description="Timeout for device queries in seconds")
    restore_timeout: int = Field(default=900, description="Timeout for backup and restore in seconds")


class ITweakConfig(BaseModel):
    """Main configuration for iTweakSuite."""

    documents_root: Path = Field(
        default_factory=lambda: Path.home() / ".local/share/itweaksuite",
        description="Root for the image cache, workspaces, staging and backup"
    )
    template_dir: Optional[Path] = Field(
        default=None,
        description="Workspace template tree (bundled template if unset)"
    )

    images: ImageConfig = Field(default_factory=ImageConfig)
    tools: ToolConfig = Field(default_factory=ToolConfig)

    # Runtime settings
    min_supported_major: int = Field(default=15, description="Oldest supported iOS major version")
    log_level: str = Field(default="INFO", description="Logging level")
    max_concurrent_operations: int = Field(default=4, description="Max concurrent operations")

    model_config = ConfigDict(validate_assignment=True)


def load_config(config_path: Optional[Path] = None) -> ITweakConfig:
    """Load configuration from file or create default."""

    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if config_path.exists():
        yaml = YAML(typ="safe")
        with open(config_path, "r") as f:
            data = yaml.load(f) or {}
        return ITweakConfig(**data)
    else:
        config = ITweakConfig()
        save_config(config, config_path)
        return config


def save_config(config: ITweakConfig, config_path: Optional[Path] = None) -> None:
    """Save configuration to file."""

    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    config_path.parent.mkdir(parents=True, exist_ok=True)

    yaml = YAML()
    yaml.default_flow_style = False

    with open(config_path, "w") as f:
        yaml.dump(config.model_dump(mode="json"), f)


def get_config() -> ITweakConfig:
    """Get the global configuration instance."""

    if not hasattr(get_config, "_config"):
        get_config._config = load_config()

    return get_config._config


def set_config(config: ITweakConfig) -> None:
    """Replace the global configuration instance."""
    get_config._config = config
