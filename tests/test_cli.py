from __future__ import annotations

import pytest

from overlay_notifier import cli


class _EngineStub:
    instances: list["_EngineStub"] = []
    logging_calls: list = []

    def __init__(self, preferences):
        self.preferences = preferences
        self.idle = True
        self.started = False
        self.stopped = False
        self.notified = []
        self.requests = []
        _EngineStub.instances.append(self)

    def target_url(self):
        return f"ws://{self.preferences.host}:{self.preferences.port}/"

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def notify(self, title, body, timeout_ms=None, icon_bytes=None):
        self.notified.append((title, body, timeout_ms, icon_bytes))
        return True

    def notify_request(self, request):
        self.requests.append(request)
        return True

    def is_idle(self):
        return self.idle

    def status(self):
        return "Connecting"


@pytest.fixture
def engine_stub(monkeypatch):
    _EngineStub.instances = []
    monkeypatch.setattr(cli, "NotifierEngine", _EngineStub)
    _EngineStub.logging_calls = []
    monkeypatch.setattr(
        cli, "configure_logging", lambda debug, log_dir=None: _EngineStub.logging_calls.append((debug, log_dir))
    )
    monkeypatch.setattr(cli.time, "sleep", lambda seconds: None)
    for name in ("OVERLAY_NOTIFIER_HOST", "OVERLAY_NOTIFIER_PORT", "OVERLAY_NOTIFIER_CLIENT"):
        monkeypatch.delenv(name, raising=False)
    return _EngineStub


def test_parser_defaults():
    args = cli.build_parser().parse_args([])
    assert args.body == cli.DEFAULT_MESSAGE
    assert args.title == cli.DEFAULT_TITLE
    assert args.wait == 10.0


def test_main_sends_and_reports_delivery(engine_stub, capsys):
    code = cli.main(["hello", "--title", "T", "--host", "10.1.1.1", "--port", "5000", "--timeout-ms", "3000"])

    engine = engine_stub.instances[0]
    assert code == 0
    assert engine.preferences.host == "10.1.1.1"
    assert engine.preferences.port == 5000
    assert engine.preferences.auto_connect is True
    assert engine.notified == [("T", "hello", 3000, None)]
    assert engine.started and engine.stopped
    assert "Notification delivered." in capsys.readouterr().out


def test_main_embeds_icon_file(engine_stub, tmp_path):
    icon = tmp_path / "icon.png"
    icon.write_bytes(b"\x89PNG")
    assert cli.main(["hi", "--icon", str(icon)]) == 0
    assert engine_stub.instances[0].notified[0][3] == b"\x89PNG"


def test_main_uses_icon_url_request(engine_stub):
    assert cli.main(["hi", "--icon-url", "https://cdn/a.png"]) == 0
    request = engine_stub.instances[0].requests[0]
    assert request.icon_url == "https://cdn/a.png"
    assert request.body == "hi"


def test_main_reports_missing_icon_file(engine_stub, tmp_path, capsys):
    assert cli.main(["hi", "--icon", str(tmp_path / "missing.png")]) == 1
    assert "Unable to read icon" in capsys.readouterr().err
    assert engine_stub.instances == []


def test_main_times_out_when_overlay_never_accepts(engine_stub, monkeypatch, capsys):
    monkeypatch.setattr(_EngineStub, "is_idle", lambda self: False)
    assert cli.main(["hi", "--wait", "0"]) == 1
    assert "did not accept" in capsys.readouterr().err
    assert engine_stub.instances[0].stopped


def test_main_passes_log_dir_and_enables_frame_logging(engine_stub, tmp_path):
    assert cli.main(["hi", "--log-dir", str(tmp_path)]) == 0
    assert engine_stub.logging_calls == [(True, tmp_path)]
    assert engine_stub.instances[0].preferences.log_debug is True


def test_main_without_log_dir_keeps_console_only(engine_stub):
    assert cli.main(["hi"]) == 0
    assert engine_stub.logging_calls == [(False, None)]
