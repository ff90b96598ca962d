"""
Runner Tests
============

The server builds the app through the `main.create_app` factory, so
importing `main` must not connect to MongoDB.
"""

import uvicorn

import main
import run
from config import Settings


def test_importing_main_builds_no_app():
    assert not hasattr(main, "app")


def test_runner_serves_the_app_factory(monkeypatch):
    calls = []
    monkeypatch.setattr(uvicorn, "run", lambda target, **kwargs: calls.append((target, kwargs)))
    monkeypatch.setattr(run, "get_settings", lambda: Settings(_env_file=None, port=8080))

    run.main()

    assert calls == [("main:create_app", {"factory": True, "host": "0.0.0.0", "port": 8080, "reload": False})]
