import pytest


@pytest.fixture(autouse=True)
def _isolated_trace_log(tmp_path, monkeypatch):
    from wicprov import cli, executil

    monkeypatch.setattr(executil, "LOG_DIRS", [str(tmp_path / "logs")])
    monkeypatch.setattr(executil, "LOG_PATH", None)
    monkeypatch.setattr(cli, "RESULT_LOG_PATH", None)
