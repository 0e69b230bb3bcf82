import asyncio

import pytest

from scorecard import config
from scorecard.client.backup import JsonFileBackup, MemoryBackup
from scorecard.client.bridge import FlushFailed
from scorecard.client.clock import VirtualScheduler
from scorecard.client.session import RoundSession
from scorecard.client.store import ReconcileSource, StoreNotInitialized
from scorecard.client.transport import TransportError

from card_support import ROUND_ID, FakeTransport


def _session(transport=None, backup=None):
    return RoundSession(
        transport or FakeTransport(),
        backup=backup if backup is not None else MemoryBackup(),
        scheduler=VirtualScheduler(),
        debounce=2.0,
    )


def test_complete_flushes_before_completing():
    async def scenario():
        transport = FakeTransport()
        backup = MemoryBackup()
        session = _session(transport, backup)
        result = await session.open(ROUND_ID)
        assert result.source is ReconcileSource.SERVER

        session.store.update_strokes("p1", 1, 4)
        session.store.update_strokes("p2", 1, 5)
        response = await session.complete(nine="front")

        assert response["status"] == "completed"
        assert len(transport.batches) == 1
        assert transport.completed == [(ROUND_ID, "front")]
        assert session.closed
        assert session.round_id is None
        assert backup.load(ROUND_ID) is None

    asyncio.run(scenario())


def test_complete_does_not_call_server_with_unsaved_scores():
    async def scenario():
        transport = FakeTransport()
        session = _session(transport)
        await session.open(ROUND_ID)
        transport.fail = 1
        session.store.update_strokes("p1", 1, 4)

        with pytest.raises(FlushFailed):
            await session.complete()
        assert transport.completed == []
        assert not session.closed
        assert session.store.is_dirty

    asyncio.run(scenario())


def test_complete_server_rejection_leaves_session_open():
    class RejectingTransport(FakeTransport):
        async def complete_round(self, round_id, nine=None):
            raise TransportError("round incomplete", status_code=400, code="round_incomplete")

    async def scenario():
        session = _session(RejectingTransport())
        await session.open(ROUND_ID)

        with pytest.raises(TransportError) as exc:
            await session.complete()
        assert exc.value.code == "round_incomplete"
        assert not session.closed

    asyncio.run(scenario())


def test_complete_without_round_fails():
    async def scenario():
        with pytest.raises(StoreNotInitialized):
            await _session().complete()

    asyncio.run(scenario())


def test_save_and_exit_keeps_backup_when_save_fails():
    async def scenario():
        backup = MemoryBackup()
        transport = FakeTransport()
        session = _session(transport, backup)
        await session.open(ROUND_ID)
        transport.fail = 1
        session.store.update_strokes("p1", 1, 4)

        assert await session.save_and_exit() is False
        assert session.closed
        assert backup.load(ROUND_ID).entries["p1-1"].strokes == 4

        # reopening restores the unsent stroke and sends it
        reopened = _session(FakeTransport(), backup)
        result = await reopened.open(ROUND_ID)
        assert result.source is ReconcileSource.LOCAL
        assert await reopened.save_and_exit() is True
        assert backup.load(ROUND_ID) is None

    asyncio.run(scenario())


def test_default_backup_writes_json_under_backup_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "SCORECARD_BACKUP_DIR", tmp_path / "backups")

    async def scenario():
        session = RoundSession(FakeTransport(), scheduler=VirtualScheduler())
        await session.open(ROUND_ID)
        session.store.update_strokes("p1", 1, 4)
        session.close()

    asyncio.run(scenario())

    snapshot = JsonFileBackup(tmp_path / "backups").load(ROUND_ID)
    assert snapshot is not None
    assert snapshot.entries["p1-1"].strokes == 4
