import pytest

from sd2epg.config import ConfigManager


def write_config(path, **settings):
    lines = ['<?xml version="1.0" encoding="utf-8"?>', '<settings version="1">']
    for key, value in settings.items():
        lines.append(f'  <setting id="{key}">{value}</setting>')
    lines.append("</settings>")
    path.write_text("\n".join(lines), encoding="utf-8")
    return path


def test_default_config_created_but_account_required(tmp_path):
    config_file = tmp_path / "conf" / "sd2epg.xml"
    manager = ConfigManager(config_file)

    with pytest.raises(ValueError):
        manager.load_config()
    assert config_file.exists()


def test_settings_are_typed(tmp_path):
    config_file = write_config(
        tmp_path / "sd2epg.xml",
        username="user",
        password="secret",
        lineups="USA-A-X, USA-B-Y",
        expectedcount="120",
        seriesposterart="true",
        extendeddata="no",
        workers="6",
    )
    manager = ConfigManager(config_file)
    config = manager.load_config()

    assert config["username"] == "user"
    assert config["seriesposterart"] is True
    assert config["extendeddata"] is False
    assert config["workers"] == 6
    assert manager.get_lineups() == ["USA-A-X", "USA-B-Y"]
    assert manager.get_expected_count() == 120
    # defaults for settings absent from the file
    assert config["language"] == "en"
    assert config["relogs"] == 30


def test_invalid_values_fall_back_to_defaults(tmp_path):
    config_file = write_config(
        tmp_path / "sd2epg.xml",
        username="user",
        password="secret",
        workers="50",
        relogs="abc",
        expectedcount="0",
        tmdb="true",
        unknown="1",
    )
    manager = ConfigManager(config_file)
    config = manager.load_config()

    assert config["workers"] == 4
    assert config["relogs"] == 30
    assert config["tmdb"] is False
    assert manager.get_expected_count() is None
    assert "unknown" not in config


def test_worker_overrides(tmp_path, monkeypatch):
    config_file = write_config(tmp_path / "sd2epg.xml", username="user", password="secret")

    monkeypatch.setenv("SD2EPG_MAX_WORKERS", "2")
    manager = ConfigManager(config_file)
    assert manager.load_config()["workers"] == 2
    assert "workers" in manager.config_changes

    # command line wins over the environment
    assert manager.load_config(workers=8)["workers"] == 8


def test_invalid_xml_raises(tmp_path):
    config_file = tmp_path / "sd2epg.xml"
    config_file.write_text("<settings>", encoding="utf-8")
    with pytest.raises(Exception):
        ConfigManager(config_file).load_config()


def test_parse_boolean(tmp_path):
    manager = ConfigManager(tmp_path / "x.xml")
    assert manager._parse_boolean("Yes") is True
    assert manager._parse_boolean("off") is False
    assert manager._parse_boolean(None) is False
