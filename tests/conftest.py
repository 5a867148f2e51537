"""Shared pytest fixtures."""

from __future__ import annotations

from collections.abc import Sequence

import pytest

from folderindex.db.connection import Database
from folderindex.db.schema import initialize
from folderindex.errors import ConfigurationError
from folderindex.llm_client import ChatResult


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".folderindex.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


# ---------------------------------------------------------------------------
# Fake capability clients
# ---------------------------------------------------------------------------


def fake_vector(text: str, dim: int = 8) -> list[float]:
    """Deterministic non-zero vector derived from *text*."""
    seed = sum(ord(c) for c in text) or 1
    return [float((seed * (i + 3)) % 97 + 1) for i in range(dim)]


class FakeEmbeddingClient:
    def __init__(self, dim: int = 8, fail: Exception | None = None) -> None:
        self.dim = dim
        self.fail = fail
        self.calls: list[list[str]] = []

    async def embed_documents(self, texts: Sequence[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.fail is not None:
            raise self.fail
        return [fake_vector(t, self.dim) for t in texts]

    async def embed_query(self, text: str) -> list[float]:
        return (await self.embed_documents([text]))[0]


class FakeChatClient:
    def __init__(self, reply: str = "A short summary.", output_tokens: int | None = 7) -> None:
        self.reply = reply
        self.output_tokens = output_tokens
        self.calls: list[list[dict]] = []

    async def invoke(self, messages):
        self.calls.append(messages)
        return ChatResult(content=self.reply, output_tokens=self.output_tokens)


class FakeClientFactory:
    """Hands out the given fake clients; a None model raises like the real factory."""

    def __init__(self, embedder=None, chat=None) -> None:
        self.embedder = embedder or FakeEmbeddingClient()
        self.chat = chat or FakeChatClient()

    def embedding_client(self, model):
        if not model:
            raise ConfigurationError("No embedding model configured.")
        return self.embedder

    def chat_client(self, model):
        if not model:
            raise ConfigurationError("No chat model configured.")
        return self.chat


@pytest.fixture
def fake_embedder() -> FakeEmbeddingClient:
    return FakeEmbeddingClient()


@pytest.fixture
def fake_chat() -> FakeChatClient:
    return FakeChatClient()


@pytest.fixture
def fake_clients(fake_embedder, fake_chat) -> FakeClientFactory:
    return FakeClientFactory(fake_embedder, fake_chat)
