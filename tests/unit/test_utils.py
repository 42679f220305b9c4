"""
Unit tests for utility modules (config, logging).
"""

import pytest
from pathlib import Path

import yaml
from pydantic import ValidationError


# ──────────────────────────────────────────────────────────────────────────────
# Config tests
# ──────────────────────────────────────────────────────────────────────────────

class TestConfigModels:
    """Tests for configuration model classes."""

    def test_data_config_defaults(self):
        from graphload.utils.config import DataConfig
        cfg = DataConfig()
        assert cfg.schema_file == Path("./data/schema.json")
        assert cfg.nodes_file == Path("./data/air-routes-nodes.csv")
        assert cfg.edges_file == Path("./data/air-routes-edges.csv")
        assert cfg.output_dir == Path("./outputs")

    def test_loading_config_defaults(self):
        from graphload.utils.config import LoadingConfig
        cfg = LoadingConfig()
        assert cfg.edge_batch_size == 100
        assert cfg.weight_key == "dist"
        assert cfg.fresh is False

    def test_loading_config_rejects_zero_batch(self):
        from graphload.utils.config import LoadingConfig
        with pytest.raises(ValidationError):
            LoadingConfig(edge_batch_size=0)

    def test_store_config_backend_choices(self):
        from graphload.utils.config import StoreConfig
        assert StoreConfig().backend == "surrealdb"
        assert StoreConfig(backend="memory").backend == "memory"
        with pytest.raises(ValidationError):
            StoreConfig(backend="neo4j")
        with pytest.raises(ValidationError):
            StoreConfig(schema_default="auto")

    def test_surreal_config_url(self):
        from graphload.utils.config import SurrealConfig
        cfg = SurrealConfig(host="myhost", port=9000)
        assert cfg.url == "ws://myhost:9000/rpc"

    def test_surreal_config_defaults(self):
        from graphload.utils.config import SurrealConfig
        cfg = SurrealConfig()
        assert cfg.host == "localhost"
        assert cfg.port == 8000
        assert cfg.namespace == "graph"
        assert cfg.database == "airroutes"

    def test_logging_config_defaults(self):
        from graphload.utils.config import LoggingConfig
        cfg = LoggingConfig()
        assert cfg.level == "INFO"
        assert cfg.console is True
        assert cfg.file is True

    def test_loader_config_defaults(self):
        from graphload.utils.config import LoaderConfig
        cfg = LoaderConfig()
        assert cfg.name == "air_routes_loader"
        assert cfg.version == "1.0.0"
        assert cfg.logs_dir == Path("./outputs/logs")

    def test_env_override(self, monkeypatch):
        from graphload.utils.config import LoaderConfig
        monkeypatch.setenv("GRAPHLOAD_LOADING__EDGE_BATCH_SIZE", "25")
        monkeypatch.setenv("GRAPHLOAD_STORE__BACKEND", "memory")
        cfg = LoaderConfig()
        assert cfg.loading.edge_batch_size == 25
        assert cfg.store.backend == "memory"


class TestLoadConfig:
    """Tests for YAML config loading."""

    def test_load_config_no_file(self, tmp_path):
        """Loading config without a file should return defaults."""
        from graphload.utils.config import load_config
        cfg = load_config(tmp_path / "nonexistent.yaml")
        assert cfg.name == "air_routes_loader"

    def test_load_config_from_yaml(self, tmp_path):
        """Loading config from a YAML file should override defaults."""
        from graphload.utils.config import load_config

        config_data = {
            "loader": {"name": "test_loader", "version": "2.0.0"},
            "data": {"schema_file": "/test/schema.json", "output_dir": "/test/out"},
            "loading": {"edge_batch_size": 500, "fresh": True},
            "store": {"backend": "memory"},
            "surreal": {"host": "db.example.com", "port": 9999},
        }
        config_file = tmp_path / "test_config.yaml"
        with open(config_file, "w") as f:
            yaml.dump(config_data, f)

        cfg = load_config(config_file)
        assert cfg.name == "test_loader"
        assert cfg.version == "2.0.0"
        assert cfg.data.schema_file == Path("/test/schema.json")
        assert cfg.loading.edge_batch_size == 500
        assert cfg.loading.fresh is True
        assert cfg.store.backend == "memory"
        assert cfg.surreal.host == "db.example.com"
        assert cfg.surreal.port == 9999

    def test_load_config_empty_yaml(self, tmp_path):
        from graphload.utils.config import load_config
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")
        cfg = load_config(config_file)
        assert cfg.loading.edge_batch_size == 100

    def test_load_config_default_path(self, tmp_path, monkeypatch):
        """When no path given, should try default config/loader_config.yaml."""
        from graphload.utils.config import load_config
        monkeypatch.chdir(tmp_path)
        cfg = load_config(None)
        assert cfg.name == "air_routes_loader"

    def test_project_config_file(self):
        from graphload.utils.config import load_config
        project_root = Path(__file__).resolve().parents[2]
        cfg = load_config(project_root / "config" / "loader_config.yaml")
        assert cfg.loading.edge_batch_size == 100
        assert cfg.surreal.database == "airroutes"


# ──────────────────────────────────────────────────────────────────────────────
# Logging tests
# ──────────────────────────────────────────────────────────────────────────────

class TestLoggingSetup:
    """Tests for logging configuration."""

    def test_setup_logging_creates_log_file(self, tmp_path):
        from graphload.utils.logging import setup_logging
        log_dir = tmp_path / "logs"
        log_file = setup_logging(log_dir, level="DEBUG", console=False, file=True)
        assert log_file.exists()
        assert log_dir.exists()
        assert "loader_" in log_file.name

    def test_setup_logging_creates_directory(self, tmp_path):
        from graphload.utils.logging import setup_logging
        log_dir = tmp_path / "nested" / "logs"
        setup_logging(log_dir, console=False)
        assert log_dir.exists()

    def test_setup_logging_with_custom_format(self, tmp_path):
        from graphload.utils.logging import setup_logging
        log_file = setup_logging(tmp_path / "logs_custom", log_format="{message}", console=False)
        assert log_file.exists()

    def test_setup_logging_reconfigure(self, tmp_path):
        """Reconfiguring logging should work without errors."""
        from graphload.utils.logging import setup_logging
        log_dir = tmp_path / "logs_reconfig"
        log1 = setup_logging(log_dir, console=False)
        log2 = setup_logging(log_dir, console=False)
        assert log1.parent == log2.parent

    def test_component_written_to_file(self, tmp_path):
        from graphload.utils.logging import get_logger, setup_logging
        log_file = setup_logging(tmp_path / "logs", console=False)
        get_logger("SchemaLoader").info("schema ready")
        content = log_file.read_text()
        assert "SchemaLoader" in content
        assert "schema ready" in content

    def test_get_logger(self):
        from graphload.utils.logging import get_logger
        log = get_logger("test_module")
        assert log is not None
