from datetime import timedelta

from writing_flow import server_runner
from writing_flow.analyzer import FallbackAnalyzer, HeuristicAnalyzer
from writing_flow.config import SessionSettings


def capture_run(monkeypatch):
    calls = []
    monkeypatch.setattr(
        server_runner.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs))
    )
    return calls


def shut_down(app):
    lifecycle = app.state.lifecycle
    lifecycle.shutdown()
    lifecycle.store.close()


def test_run_server_wires_settings_into_the_app(tmp_path, monkeypatch):
    calls = capture_run(monkeypatch)
    settings = SessionSettings.from_minutes(5, inactivity_seconds=10)

    server_runner.run_server(port=9001, db_path=tmp_path / "api.sqlite3", settings=settings)

    ((app, kwargs),) = calls
    try:
        assert kwargs == {"host": "127.0.0.1", "port": 9001, "log_level": "info"}
        assert app.state.db_path == tmp_path / "api.sqlite3"
        lifecycle = app.state.lifecycle
        assert lifecycle.settings.default_duration == timedelta(minutes=5)
        assert lifecycle.monitor.threshold == 10
        assert isinstance(lifecycle.analyzer, HeuristicAnalyzer)
    finally:
        shut_down(app)


def test_run_server_can_use_the_model_analyzer(tmp_path, monkeypatch):
    calls = capture_run(monkeypatch)
    opened = []
    monkeypatch.setattr(server_runner, "_open_docs_later", opened.append)

    server_runner.run_server(db_path=tmp_path / "api.sqlite3", use_llm=True, open_browser=True)

    ((app, _),) = calls
    try:
        assert isinstance(app.state.lifecycle.analyzer, FallbackAnalyzer)
        assert opened == ["http://127.0.0.1:8766/docs"]
    finally:
        shut_down(app)
