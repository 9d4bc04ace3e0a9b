"""Shared fixtures for kuiper scenario tests."""

import json

import pytest
from click.testing import CliRunner

from kuiper import core
from kuiper.executor import RequestResult


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def global_kuiper_dir(tmp_path, monkeypatch):
    """Override the global ~/.kuiper directory to a temp location."""
    fake_global = tmp_path / "fake_home" / ".kuiper"
    fake_global.mkdir(parents=True)
    monkeypatch.setattr(core, "GLOBAL_DIR", fake_global)
    monkeypatch.setattr(core, "GLOBAL_CONFIG", fake_global / "config.yaml")
    return fake_global


@pytest.fixture
def project(tmp_path, monkeypatch, global_kuiper_dir):
    """A project directory bounded by a .kuiperroot marker, used as CWD."""
    root = tmp_path / "project"
    root.mkdir()
    (root / ".kuiperroot").touch()
    monkeypatch.chdir(root)
    monkeypatch.delenv("KUIPER_LOG_LEVEL", raising=False)
    return root.resolve()


def write_json(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data))
    return path


def write_request(path, uri="http://localhost:3000/health", method="GET", **fields):
    return write_json(path, {"uri": uri, "method": method, **fields})


def make_request_result(
    status_code=200,
    body=None,
    headers=None,
    elapsed_ms=42.0,
    error=None,
    raw_text="",
    reason="",
):
    """Factory for mock RequestResult objects."""
    r = RequestResult()
    r.status_code = status_code
    r.reason = reason
    r.headers = headers or {}
    r.body = body
    r.elapsed_ms = elapsed_ms
    r.error = error
    r.raw_text = raw_text or (
        json.dumps(body) if isinstance(body, dict | list) else str(body or "")
    )
    return r
