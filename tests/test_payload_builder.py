from __future__ import annotations

import pytest

from overlay_notifier import payload_builder
from overlay_notifier.payload_builder import build, resolve_icon, timeout_seconds
from overlay_notifier.preferences import Preferences


def _prefs(**overrides) -> Preferences:
    prefs = Preferences()
    for key, value in overrides.items():
        setattr(prefs, key, value)
    return prefs


def test_title_and_content_are_capped():
    record = build("t" * 200, "c" * 2000, 5000, None, None, _prefs())
    assert len(record.title) == 128
    assert len(record.content) == 1024


def test_content_cut_after_newline_has_no_trailing_newline():
    record = build("t", "a" * 1023 + "\n" + "b" * 10, 5000, None, None, _prefs())
    assert record.content == "a" * 1023


def test_content_cut_leaving_only_whitespace_gets_placeholder():
    record = build("t", " " * 1024 + "late", 5000, None, None, _prefs())
    assert record.content == "(no text)"


def test_empty_title_and_content_get_placeholders():
    record = build("", "", None, None, None, _prefs())
    assert record.title == "Notification"
    assert record.content == "(no text)"


@pytest.mark.parametrize(
    "timeout_ms, default_ms, expected",
    [
        (100, 5000, 0.5),
        (None, 5000, 5.0),
        (2500, 5000, 2.5),
        (-1, "bad", 5.0),
        (float("nan"), 3000, 3.0),
    ],
)
def test_timeout_seconds(timeout_ms, default_ms, expected):
    assert timeout_seconds(timeout_ms, default_ms) == expected


def test_icon_bytes_are_base64_encoded():
    assert resolve_icon(b"abc", _prefs()) == (True, "YWJj")


def test_caller_data_uri_is_stripped_to_payload():
    assert resolve_icon("data:image/png;base64,QUJD", _prefs()) == (True, "QUJD")


def test_fallback_data_uri_embedded_only_when_enabled():
    uri = "data:image/png;base64,QUJD"
    assert resolve_icon(None, _prefs(fallback_icon=uri, use_base64_icon=True)) == (True, "QUJD")
    assert resolve_icon(None, _prefs(fallback_icon=uri, use_base64_icon=False)) == (False, uri)


def test_fallback_keyword_is_passed_through():
    assert resolve_icon(b"", _prefs(fallback_icon="default")) == (False, "default")


def test_opacity_zero_is_kept_and_invalid_values_use_defaults():
    assert build("t", "c", None, None, None, _prefs(opacity=0)).opacity == 0.0
    assert build("t", "c", None, None, None, _prefs(opacity="bad")).opacity == 1.0
    record = build("t", "c", None, None, None, _prefs(volume=5))
    assert record.volume == 1.0


def test_fixed_height_used_when_auto_height_disabled():
    assert build("t", "c", None, None, None, _prefs(auto_height=False, height=300)).height == 300
    assert build("t", "c", None, None, None, _prefs(auto_height=False, height=0)).height == 175


def test_height_source_text_overrides_content():
    record = build("t", "x" * 400, None, None, "Hello", _prefs())
    assert record.height == 140


def test_audio_selector_follows_force_default_sound():
    assert build("t", "c", None, None, None, _prefs()).audio_selector == "default"
    assert build("t", "c", None, None, None, _prefs(force_default_sound=False)).audio_selector == ""


def test_wire_record_uses_overlay_field_names():
    wire = build("Title", "Body", 3000, None, None, _prefs(client_name="Tester")).to_wire()
    assert wire["type"] == payload_builder.NOTIFICATION_TYPE
    assert wire["index"] == 0
    assert wire["timeout"] == 3.0
    assert wire["audioPath"] == "default"
    assert wire["useBase64Icon"] is False
    assert wire["sourceApp"] == "Tester"
    assert set(wire) == {
        "type", "index", "timeout", "height", "opacity", "volume", "audioPath",
        "title", "content", "useBase64Icon", "icon", "sourceApp",
    }
