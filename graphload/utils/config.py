"""
Configuration management for the graph loader.

Uses Pydantic Settings for type-safe configuration with YAML file support
and environment variable overrides.
"""

from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..graph.errors import ConfigurationError


class DataConfig(BaseModel):
    """Input files and output directory."""
    schema_file: Path = Field(default=Path("./data/schema.json"))
    nodes_file: Path = Field(default=Path("./data/air-routes-nodes.csv"))
    edges_file: Path = Field(default=Path("./data/air-routes-edges.csv"))
    output_dir: Path = Field(default=Path("./outputs"))


class LoadingConfig(BaseModel):
    """Bulk-load tuning."""
    edge_batch_size: int = Field(
        default=100,
        gt=0,
        description="Edge rows committed per transaction"
    )
    weight_key: str = Field(
        default="dist",
        description="Edge property receiving the weight column"
    )
    fresh: bool = Field(
        default=False,
        description="Clear the store before loading"
    )


class StoreConfig(BaseModel):
    """Graph store backend selection."""
    backend: Literal["memory", "surrealdb"] = Field(default="surrealdb")
    schema_default: Literal["default", "none"] = Field(
        default="default",
        description="'default' creates undeclared labels/keys on use, 'none' rejects them"
    )


class SurrealConfig(BaseModel):
    """SurrealDB connection configuration."""
    host: str = Field(default="localhost")
    port: int = Field(default=8000)
    namespace: str = Field(default="graph")
    database: str = Field(default="airroutes")
    username: str = Field(default="root")
    password: str = Field(default="root")

    @property
    def url(self) -> str:
        """Get the WebSocket URL for SurrealDB."""
        return f"ws://{self.host}:{self.port}/rpc"


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO")
    format: Optional[str] = Field(default=None)
    console: bool = Field(default=True)
    file: bool = Field(default=True)


class LoaderConfig(BaseSettings):
    """
    Main loader configuration.

    Configuration is loaded from:
    1. Default values
    2. YAML config file (if provided)
    3. Environment variables (prefix: GRAPHLOAD_)
    """
    name: str = Field(default="air_routes_loader")
    version: str = Field(default="1.0.0")

    data: DataConfig = Field(default_factory=DataConfig)
    loading: LoadingConfig = Field(default_factory=LoadingConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    surreal: SurrealConfig = Field(default_factory=SurrealConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="GRAPHLOAD_",
        env_nested_delimiter="__",
    )

    @property
    def logs_dir(self) -> Path:
        """Get the logs directory."""
        return self.data.output_dir / "logs"


DEFAULT_CONFIG_PATH = Path("config/loader_config.yaml")

# Top-level YAML sections mapped onto LoaderConfig fields
SECTIONS = ("data", "loading", "store", "surreal", "logging")


def load_config(config_path: Optional[Path] = None) -> LoaderConfig:
    """
    Load loader configuration from YAML file.

    The optional ``loader:`` section carries name and version; the other
    sections map onto the nested models. Environment variables fill in
    whatever the file leaves unset.

    Args:
        config_path: Path to YAML config file. If None, uses
            config/loader_config.yaml when present, else defaults.

    Returns:
        LoaderConfig instance with loaded settings.

    Raises:
        ConfigurationError: If the file is not a mapping or fails validation.
    """
    if config_path is None and DEFAULT_CONFIG_PATH.exists():
        config_path = DEFAULT_CONFIG_PATH

    if config_path is None or not Path(config_path).exists():
        return LoaderConfig()

    with open(config_path, "r") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")

    overrides = dict(raw.get("loader") or {})
    overrides.update({key: raw[key] for key in SECTIONS if raw.get(key) is not None})
    try:
        return LoaderConfig(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e
