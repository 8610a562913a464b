import json
from pathlib import Path

import pytest
from pydantic import HttpUrl

from postscraper.config import DEFAULT_POSTS_NUM, DEFAULT_SCRAPPING_URL, RunConfig, SettingsStore


def test_missing_file_uses_defaults(tmp_path: Path) -> None:
    config = SettingsStore(tmp_path / "settings.json").load_config()

    assert str(config.scrapping_url) == DEFAULT_SCRAPPING_URL
    assert config.posts_num == DEFAULT_POSTS_NUM == 20
    assert config.timeout == 60
    assert config.verify_tls is False
    assert config.schedule is None


def test_round_trip(tmp_path: Path) -> None:
    settings_path = tmp_path / "settings.json"
    settings = SettingsStore(settings_path)
    settings.update({"scrapping_url": "https://example.com/news", "posts_num": "5", "schedule": "hourly"})
    settings.dump()

    loaded = SettingsStore(settings_path)
    config = loaded.load_config()
    assert str(config.scrapping_url) == "https://example.com/news"
    assert config.posts_num == 5
    assert loaded.get("schedule") == "hourly"


def test_blank_values_fall_back_to_defaults(tmp_path: Path) -> None:
    settings_path = tmp_path / "settings.json"
    settings_path.write_text(json.dumps({"scrapping_url": "", "posts_num": ""}), encoding="utf-8")

    config = SettingsStore(settings_path).load_config()

    assert str(config.scrapping_url) == DEFAULT_SCRAPPING_URL
    assert config.posts_num == DEFAULT_POSTS_NUM


def test_unknown_keys_are_preserved(tmp_path: Path) -> None:
    settings_path = tmp_path / "settings.json"
    settings_path.write_text(json.dumps({"posts_num": 3, "legacy_flag": True}), encoding="utf-8")

    settings = SettingsStore(settings_path)
    settings.set("posts_num", 4)
    settings.dump()

    stored = json.loads(settings_path.read_text(encoding="utf-8"))
    assert stored["legacy_flag"] is True
    assert stored["posts_num"] == 4
    assert settings.load_config().posts_num == 4


def test_invalid_json_raises_value_error(tmp_path: Path) -> None:
    settings_path = tmp_path / "settings.json"
    settings_path.write_text("{broken", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid JSON"):
        SettingsStore(settings_path)


def test_invalid_values_are_rejected(tmp_path: Path) -> None:
    settings = SettingsStore(tmp_path / "settings.json")

    with pytest.raises(ValueError, match="Settings are invalid"):
        settings.update({"posts_num": 0})

    assert settings.load_config().posts_num == DEFAULT_POSTS_NUM


def test_run_config_rejects_negative_timeout() -> None:
    with pytest.raises(ValueError):
        RunConfig(timeout=-1)


def test_default_url_is_validated() -> None:
    assert isinstance(RunConfig().scrapping_url, HttpUrl)
