import importlib
import sys

import pytest


def _forget_main():
    sys.modules.pop("scorecard.main", None)


@pytest.fixture(autouse=True)
def main_import_isolation():
    _forget_main()
    try:
        yield
    finally:
        _forget_main()


def test_rejects_wildcard_with_credentials(monkeypatch):
    monkeypatch.setenv("ALLOWED_ORIGINS", "*")
    monkeypatch.setenv("ALLOW_CREDENTIALS", "true")
    with pytest.raises(ValueError):
        importlib.import_module("scorecard.main")


def test_requires_allowed_origins(monkeypatch):
    monkeypatch.delenv("ALLOWED_ORIGINS", raising=False)
    monkeypatch.delenv("ALLOW_CREDENTIALS", raising=False)
    with pytest.raises(ValueError):
        importlib.import_module("scorecard.main")


def test_allows_configured_origin(monkeypatch):
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://scores.example.com, ")
    main = importlib.import_module("scorecard.main")
    assert main.ALLOWED_ORIGINS == ["https://scores.example.com"]
