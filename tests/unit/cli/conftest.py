"""Fixtures for CLI tests: an isolated project directory with one folder."""

from __future__ import annotations

import pytest
import yaml

from folderindex.embed.progress import broadcaster


@pytest.fixture
def project(tmp_path, monkeypatch):
    """CWD with folderindex.yaml registering ./docs; global config isolated."""
    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "guide.md").write_text("# Guide\n\nHow to install the widget.", encoding="utf-8")
    (docs / "small.txt").write_text("ten bytes!", encoding="utf-8")
    (tmp_path / "folderindex.yaml").write_text(
        yaml.dump({"folders": [{"name": "docs", "path": "docs"}]}), encoding="utf-8"
    )
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("folderindex.config._GLOBAL_CONFIG_PATH", tmp_path / "global.yaml")
    for name in (
        "FOLDERINDEX_EMBEDDING_MODEL",
        "FOLDERINDEX_CHAT_MODEL",
        "FOLDERINDEX_EMBED_SUMMARIES",
        "FOLDERINDEX_DB",
    ):
        monkeypatch.delenv(name, raising=False)
    yield tmp_path
    broadcaster.reset()


@pytest.fixture
def fake_litellm(monkeypatch, fake_clients):
    """Route every LiteLLMClientFactory the CLI creates to the fake clients."""
    monkeypatch.setattr(
        "folderindex.embed.scheduler.LiteLLMClientFactory", lambda num_retries=3: fake_clients
    )
    monkeypatch.setattr(
        "folderindex.cli.search.LiteLLMClientFactory", lambda num_retries=3: fake_clients
    )
    return fake_clients
