"""Tests for ProgressBroadcaster."""

from __future__ import annotations

import asyncio

import pytest

from folderindex.embed.progress import (
    CLEAR,
    EMBEDDING_COMPLETE,
    UPDATE,
    ProgressBroadcaster,
    ProgressState,
)


@pytest.fixture
def progress():
    return ProgressBroadcaster()


# --- update_progress ---

def test_update_merges_into_previous_state(progress):
    progress.update_progress("docs", phase="embedding", total_files=10, message="Embedding 0/10")
    state = progress.update_progress("docs", processed_files=4)

    assert state.phase == "embedding"
    assert state.total_files == 10
    assert state.processed_files == 4
    assert state.message == "Embedding 0/10"
    assert progress.get_progress("docs") == state


def test_first_update_starts_from_idle(progress):
    state = progress.update_progress("docs", message="hello")
    assert state.phase == "idle"
    assert state.folder_name == "docs"


def test_update_rejects_unknown_phase(progress):
    with pytest.raises(ValueError, match="Unknown phase 'done'"):
        progress.update_progress("docs", phase="done")
    assert progress.get_progress("docs") is None


def test_update_rejects_unknown_field(progress):
    with pytest.raises(ValueError):
        progress.update_progress("docs", percent=50)


def test_update_publishes_state(progress):
    seen: list[ProgressState] = []
    progress.subscribe(UPDATE, seen.append)
    progress.update_progress("docs", phase="parsing")
    assert [s.phase for s in seen] == ["parsing"]


def test_terminal_phase_calls_on_change():
    changed: list[str] = []
    progress = ProgressBroadcaster(on_change=changed.append)
    progress.update_progress("docs", phase="embedding")
    progress.update_progress("docs", phase="completed")
    progress.update_progress("other", phase="error", error="boom")
    assert changed == ["docs", "other"]


def test_state_is_terminal():
    assert ProgressState("docs", phase="completed").is_terminal
    assert ProgressState("docs", phase="error").is_terminal
    assert not ProgressState("docs", phase="embedding").is_terminal


# --- clear_progress ---

def test_clear_removes_state_and_publishes(progress):
    cleared: list[dict] = []
    progress.subscribe(CLEAR, cleared.append)
    progress.update_progress("docs", phase="parsing")

    progress.clear_progress("docs")
    progress.clear_progress("docs")

    assert progress.get_progress("docs") is None
    assert cleared == [{"folder_name": "docs"}]


def test_all_progress(progress):
    progress.update_progress("a", phase="parsing")
    progress.update_progress("b", phase="embedding")
    assert sorted(s.folder_name for s in progress.all_progress()) == ["a", "b"]


# --- subscribe / emit ---

def test_unsubscribe(progress):
    seen: list[object] = []
    unsubscribe = progress.subscribe(EMBEDDING_COMPLETE, seen.append)
    progress.emit(EMBEDDING_COMPLETE, {"folder_name": "docs"})
    unsubscribe()
    progress.emit(EMBEDDING_COMPLETE, {"folder_name": "docs"})
    assert len(seen) == 1


def test_failing_handler_does_not_stop_others(progress, caplog):
    seen: list[object] = []

    def boom(payload):
        raise RuntimeError("handler broke")

    progress.subscribe(UPDATE, boom)
    progress.subscribe(UPDATE, seen.append)
    progress.update_progress("docs", phase="parsing")

    assert len(seen) == 1
    assert "Progress handler for 'update' failed" in caplog.text


def test_reset(progress):
    seen: list[object] = []
    progress.subscribe(UPDATE, seen.append)
    progress.update_progress("docs", phase="parsing")
    progress.reset()
    progress.update_progress("docs", phase="embedding")
    assert len(seen) == 1
    assert progress.get_progress("docs").phase == "embedding"


# --- listen ---

@pytest.mark.asyncio
async def test_listen_yields_current_then_updates_until_terminal(progress):
    progress.update_progress("docs", phase="parsing")

    async def consume():
        return [event async for event in progress.listen("docs")]

    task = asyncio.create_task(consume())
    await asyncio.sleep(0)
    progress.update_progress("other", phase="embedding")
    progress.update_progress("docs", phase="embedding")
    progress.update_progress("docs", phase="completed")
    events = await asyncio.wait_for(task, timeout=1)

    assert [e.kind for e in events] == [UPDATE, UPDATE, UPDATE]
    assert [e.state.phase for e in events] == ["parsing", "embedding", "completed"]
    assert progress._queues == {}


@pytest.mark.asyncio
async def test_listen_ends_on_clear(progress):
    async def consume():
        return [event async for event in progress.listen("docs")]

    task = asyncio.create_task(consume())
    await asyncio.sleep(0)
    progress.update_progress("docs", phase="embedding")
    progress.clear_progress("docs")
    events = await asyncio.wait_for(task, timeout=1)

    assert [e.kind for e in events] == [UPDATE, CLEAR]
    assert events[1].state is None


@pytest.mark.asyncio
async def test_listen_on_terminal_state_returns_immediately(progress):
    progress.update_progress("docs", phase="error", error="boom")
    events = [event async for event in progress.listen("docs")]
    assert len(events) == 1
    assert events[0].state.error == "boom"
