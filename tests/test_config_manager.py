"""Tests for the INI configuration layer."""

import configparser

import pytest

from melodymarket.exceptions import ConfigurationError
from melodymarket.models import MarketConfig
from melodymarket.storage import ConfigManager


@pytest.fixture
def config_file(tmp_path):
    return tmp_path / "config.ini"


def test_missing_file_uses_defaults(config_file):
    config = ConfigManager(config_file).load_config()

    assert config.data_dir == str(config_file.parent / "data")
    assert config.namespace == "melodymarket"
    assert config.preview_seconds == 60.0
    assert config.volume == 0.7
    assert config.config_path == str(config_file.parent)


def test_save_and_load_round_trip(config_file, tmp_path):
    manager = ConfigManager(config_file)
    manager.save_new_config({"data_dir": str(tmp_path / "store"), "namespace": "shop"})

    config = ConfigManager(config_file).load_config()

    assert config.data_dir == str(tmp_path / "store")
    assert config.namespace == "shop"
    assert config.json_logs is False


def test_cli_options_override_file(config_file):
    manager = ConfigManager(config_file)
    manager.save_new_config({"namespace": "shop"})

    config = manager.load_config({"namespace": "other", "volume": 0.2})

    assert config.namespace == "other"
    assert config.volume == 0.2


def test_missing_keys_are_migrated(config_file):
    config_file.write_text("[DEFAULT]\nvolume = 0.3\n", encoding="utf-8")

    config = ConfigManager(config_file).load_config()

    assert config.volume == 0.3
    parser = configparser.ConfigParser(interpolation=None)
    parser.read(config_file, encoding="utf-8")
    assert set(parser["DEFAULT"]) == MarketConfig.get_ini_keys()
    assert parser["DEFAULT"]["volume"] == "0.3"


def test_unparsable_value(config_file):
    config_file.write_text("[DEFAULT]\nvolume = loud\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="Invalid value"):
        ConfigManager(config_file).load_config()


@pytest.mark.parametrize(
    "override",
    [
        {"volume": 1.5},
        {"preview_seconds": 0},
        {"namespace": "../up"},
        {"load_timeout": 0},
        {"max_download_mb": 0},
    ],
)
def test_out_of_range_values(config_file, override):
    with pytest.raises(ConfigurationError, match="validation failed"):
        ConfigManager(config_file).load_config(override)


def test_get_config_as_dict(config_file):
    manager = ConfigManager(config_file)
    assert manager.get_config_as_dict() == {}

    manager.save_new_config({"namespace": "shop"})

    assert ConfigManager(config_file).get_config_as_dict()["namespace"] == "shop"
