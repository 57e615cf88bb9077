"""
Tests for the configuration loader and generator.

Tests YAML loading, validation of known options, and generation of the
documented default configuration file.
"""

import os
import stat

import pytest
import yaml

from plaxo_sync.config import (
    DEFAULT_CONFIG_FILE,
    ConfigError,
    ConfigLoader,
    generate_default_config,
    save_config_file,
)


@pytest.fixture
def loader(tmp_path):
    return ConfigLoader(config_dir=tmp_path)


class TestConfigLoaderInitialization:
    """Tests for ConfigLoader construction."""

    def test_config_path(self, tmp_path):
        """Test the default file location inside the config directory."""
        loader = ConfigLoader(config_dir=tmp_path)
        assert loader.config_path == tmp_path.resolve() / DEFAULT_CONFIG_FILE

    def test_custom_file_name(self, tmp_path):
        """Test a custom file name."""
        loader = ConfigLoader(config_dir=tmp_path, config_file="other.yaml")
        assert loader.config_path.name == "other.yaml"

    def test_env_config_dir(self, tmp_path, monkeypatch):
        """Test that PLAXO_SYNC_CONFIG_DIR is honored."""
        monkeypatch.setenv("PLAXO_SYNC_CONFIG_DIR", str(tmp_path))
        assert ConfigLoader().config_dir == tmp_path.resolve()


class TestConfigLoading:
    """Tests for ConfigLoader.load() and load_from_file()."""

    def test_missing_file(self, loader):
        """Test that a missing file yields an empty config."""
        assert loader.load() == {}

    def test_empty_file(self, loader):
        """Test that an empty file yields an empty config."""
        loader.config_path.write_text("")
        assert loader.load() == {}

    def test_comment_only_file(self, loader):
        """Test that the generated defaults load as an empty config."""
        loader.config_path.write_text(generate_default_config())
        assert loader.load() == {}

    def test_valid_file(self, loader):
        """Test loading a valid configuration."""
        loader.config_path.write_text(
            "verbose: true\nrequest_timeout: 20\nfetch_photos: true\n"
        )
        assert loader.load() == {
            "verbose": True,
            "request_timeout": 20,
            "fetch_photos": True,
        }

    def test_load_from_other_file(self, loader, tmp_path):
        """Test loading from an explicit path."""
        path = tmp_path / "custom.yaml"
        path.write_text("photo_timeout: 2.5\n")
        assert loader.load_from_file(path) == {"photo_timeout": 2.5}

    def test_invalid_yaml(self, loader):
        """Test that broken YAML raises ConfigError."""
        loader.config_path.write_text("verbose: [unclosed\n")
        with pytest.raises(ConfigError, match="Failed to parse"):
            loader.load()

    def test_non_dict_yaml(self, loader):
        """Test that a YAML list is rejected."""
        loader.config_path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="dictionary"):
            loader.load()


class TestConfigValidation:
    """Tests for ConfigLoader.validate()."""

    def test_valid_config(self, loader):
        """Test that a complete valid config passes."""
        loader.validate(
            {
                "verbose": False,
                "debug": True,
                "log_dir": "/tmp/logs",
                "log_retention_count": 0,
                "request_timeout": 10,
                "photo_timeout": 1.5,
                "fetch_photos": True,
                "database_path": "contacts.db",
            }
        )

    def test_unknown_keys_ignored(self, loader):
        """Test that unknown keys are accepted."""
        loader.validate({"something_else": [1, 2, 3]})

    def test_wrong_type(self, loader):
        """Test that a wrongly typed value is rejected."""
        with pytest.raises(ConfigError, match="Invalid type for 'verbose'"):
            loader.validate({"verbose": "yes"})

    def test_bool_rejected_for_number(self, loader):
        """Test that booleans are not accepted as timeouts."""
        with pytest.raises(ConfigError, match="expected int or float, got bool"):
            loader.validate({"request_timeout": True})

    @pytest.mark.parametrize("key", ["request_timeout", "photo_timeout"])
    def test_timeout_must_be_positive(self, loader, key):
        """Test that timeouts must be greater than zero."""
        with pytest.raises(ConfigError, match="must be > 0"):
            loader.validate({key: 0})

    def test_float_retention_rejected(self, loader):
        """Test that log_retention_count must be a whole number."""
        with pytest.raises(ConfigError, match="expected int, got float"):
            loader.validate({"log_retention_count": 2.5})

    def test_negative_retention(self, loader):
        """Test that a negative log retention is rejected."""
        with pytest.raises(ConfigError, match="must be >= 0"):
            loader.validate({"log_retention_count": -1})

    def test_non_dict(self, loader):
        """Test that validation requires a dictionary."""
        with pytest.raises(ConfigError):
            loader.validate(["verbose"])

    def test_load_and_validate(self, loader):
        """Test the combined load and validation."""
        loader.config_path.write_text("request_timeout: -5\n")
        with pytest.raises(ConfigError):
            loader.load_and_validate()


class TestConfigGenerator:
    """Tests for generate_default_config() and save_config_file()."""

    def test_generated_config_documents_every_option(self):
        """Test that each known option appears in the template."""
        content = generate_default_config()
        for key in (
            "verbose",
            "debug",
            "log_dir",
            "log_retention_count",
            "request_timeout",
            "photo_timeout",
            "fetch_photos",
            "database_path",
        ):
            assert f"# {key}:" in content

    def test_uncommented_template_is_valid(self, loader):
        """Test that enabling the documented examples gives a valid config."""
        lines = [
            line[2:]
            for line in generate_default_config().splitlines()
            if line.startswith("# ") and ": " in line and not line.startswith("# Default")
            and line[2:3].islower()
        ]
        config = yaml.safe_load("\n".join(lines))
        loader.validate(config)

    def test_save_config_file(self, tmp_path):
        """Test writing the default config file."""
        path = tmp_path / "sub" / "config.yaml"

        success, error = save_config_file(path)

        assert success is True
        assert error is None
        assert path.read_text() == generate_default_config()

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions only")
    def test_save_config_file_permissions(self, tmp_path):
        """Test that the config file is private."""
        path = tmp_path / "config.yaml"
        save_config_file(path)
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_existing_file_not_overwritten(self, tmp_path):
        """Test that an existing file is kept without overwrite."""
        path = tmp_path / "config.yaml"
        path.write_text("verbose: true\n")

        success, error = save_config_file(path)

        assert success is False
        assert "already exists" in error
        assert path.read_text() == "verbose: true\n"

    def test_overwrite(self, tmp_path):
        """Test overwriting an existing file."""
        path = tmp_path / "config.yaml"
        path.write_text("verbose: true\n")

        success, _ = save_config_file(path, overwrite=True)

        assert success is True
        assert path.read_text() == generate_default_config()
