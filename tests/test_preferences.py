from __future__ import annotations

import json

import pytest

from overlay_notifier import preferences as preferences_module
from overlay_notifier.preferences import PREFERENCES_FILE, Preferences, clamp_unit


def test_defaults_without_config_dir_do_not_touch_disk(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    prefs = Preferences()
    prefs.save()
    assert list(tmp_path.iterdir()) == []
    assert prefs.port == 42070
    assert prefs.min_interval_ms == 800


def test_save_and_reload_round_trip(tmp_path):
    prefs = Preferences(config_dir=tmp_path)
    prefs.update({"host": "10.0.0.2", "port": 4242, "opacity": 0.4, "notify_guild_messages": True})
    prefs.save()

    stored = json.loads((tmp_path / PREFERENCES_FILE).read_text(encoding="utf-8"))
    assert stored["host"] == "10.0.0.2"
    assert "config_dir" not in stored

    reloaded = Preferences(config_dir=tmp_path)
    assert reloaded.host == "10.0.0.2"
    assert reloaded.port == 4242
    assert reloaded.opacity == 0.4
    assert reloaded.notify_guild_messages is True


def test_malformed_file_keeps_defaults(tmp_path, caplog):
    (tmp_path / PREFERENCES_FILE).write_text("{not json", encoding="utf-8")
    with caplog.at_level("WARNING", logger="OverlayNotifier.Preferences"):
        prefs = Preferences(config_dir=tmp_path)
    assert prefs.host == "127.0.0.1"
    assert "Failed to read preferences" in caplog.text


@pytest.mark.parametrize(
    "field, raw, expected",
    [
        ("port", "abc", 42070),
        ("port", 70000, 42070),
        ("port", "4455", 4455),
        ("timeout_ms", 10, 500),
        ("min_interval_ms", -5, 0),
        ("opacity", "2", 1.0),
        ("opacity", 0, 0.0),
        ("volume", "loud", 0.7),
        ("auto_connect", "off", False),
        ("wrap_chars", 5, 20),
        ("max_queue", 0, 1),
        ("client_name", "  ", "XSOverlayNotifier"),
        ("icon_fetch_timeout", -1, 5.0),
    ],
)
def test_update_coerces_values(field, raw, expected):
    prefs = Preferences()
    prefs.update({field: raw})
    assert getattr(prefs, field) == expected


def test_min_height_never_exceeds_max_height():
    prefs = Preferences()
    prefs.update({"min_height": 600, "max_height": 300})
    assert prefs.min_height == 600
    assert prefs.max_height == 600


@pytest.mark.parametrize("value, expected", [(-1, 0.0), (0.25, 0.25), (None, 0.5), (True, 0.5), (float("inf"), 0.5)])
def test_clamp_unit(value, expected):
    assert clamp_unit(value, 0.5) == expected


def test_env_overrides_apply_connection_settings():
    prefs = Preferences()
    applied = prefs.apply_env_overrides(
        {
            preferences_module.ENV_HOST: "overlay.local",
            preferences_module.ENV_PORT: "5000",
            preferences_module.ENV_CLIENT_NAME: "Desk",
        }
    )
    assert applied == [preferences_module.ENV_HOST, preferences_module.ENV_PORT, preferences_module.ENV_CLIENT_NAME]
    assert (prefs.host, prefs.port, prefs.client_name) == ("overlay.local", 5000, "Desk")


def test_env_overrides_ignore_empty_values():
    prefs = Preferences()
    assert prefs.apply_env_overrides({preferences_module.ENV_HOST: ""}) == []
    assert prefs.host == "127.0.0.1"
