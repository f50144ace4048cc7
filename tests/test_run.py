import importlib.util
import sys
from pathlib import Path

import livemarks

RUN_PATH = Path(__file__).resolve().parent.parent / "run.py"


def _load_run_module():
    spec = importlib.util.spec_from_file_location("livemarks_run", RUN_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_importing_entry_point_builds_no_app(monkeypatch):
    calls = []
    monkeypatch.setattr(livemarks, "create_app", lambda *args: calls.append(args))

    module = _load_run_module()

    assert calls == []
    assert not hasattr(module, "app")


def test_main_builds_and_serves_app(monkeypatch):
    served = []

    class _App:
        def run(self, **kwargs):
            served.append(kwargs)

    module = _load_run_module()
    monkeypatch.setattr(module, "create_app", _App)
    monkeypatch.setattr(sys, "argv", ["livemarks", "--port", "9000"])

    module.main()

    assert served == [{"host": "0.0.0.0", "port": 9000, "debug": False}]
