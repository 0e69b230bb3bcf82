import logging
from datetime import timedelta

import pytest

from scorecard.client.backup import MemoryBackup
from scorecard.client.store import (
    NOT_TRACKED,
    Cell,
    ReconcileSource,
    SaveStatus,
    ScoreEntryStore,
    StoreNotInitialized,
    UnknownEntry,
)

from card_support import BASE_TIME, ROUND_ID, make_store, server_entries


def test_initialize_builds_grid_in_hole_major_order():
    store = make_store()

    assert store.participant_order == ["p1", "p2"]
    assert store.hole_numbers == [1, 2, 3]
    assert [e.entry_id for e in store.entries()] == [
        "p1-1", "p2-1", "p1-2", "p2-2", "p1-3", "p2-3",
    ]
    assert store.current_hole == 1
    assert not store.is_dirty
    # par 3 never tracks fairways
    assert store.get_entry("p1", 2).current.fairway_hit is NOT_TRACKED


def test_initialize_rejects_duplicate_cells():
    entries = server_entries()
    with pytest.raises(ValueError):
        ScoreEntryStore().initialize(ROUND_ID, entries + entries[:1])


def test_current_hole_follows_first_incomplete_hole():
    store = make_store()

    store.update_strokes("p1", 1, 4)
    assert store.current_hole == 1
    store.update_strokes("p2", 1, 5)
    assert store.current_hole == 2

    for pid in ("p1", "p2"):
        for hole in (2, 3):
            store.update_strokes(pid, hole, 4)
    assert store.current_hole == 3


def test_mutation_marks_entry_dirty_and_is_idempotent_after_save():
    backup = MemoryBackup()
    store = make_store(backup)

    store.update_strokes("p1", 1, 4)
    assert [e.entry_id for e in store.dirty_entries()] == ["p1-1"]
    assert backup.load(ROUND_ID).entries["p1-1"].strokes == 4

    store.mark_saved()
    store.mark_saved()

    assert not store.is_dirty
    assert store.save_status is SaveStatus.SAVED
    assert store.get_entry("p1", 1).original.strokes == 4
    assert backup.load(ROUND_ID) is None


def test_setting_original_value_again_is_clean():
    store = make_store()
    store.update_strokes("p1", 1, 4)
    store.update_strokes("p1", 1, None)
    assert not store.is_dirty


def test_mark_saved_with_accepted_values_keeps_later_edits_dirty():
    backup = MemoryBackup()
    store = make_store(backup)
    store.update_strokes("p1", 1, 4)
    sent = store.current_snapshot()["p1-1"]

    store.update_strokes("p1", 1, 5)
    store.mark_saved(accepted={"p1-1": sent})

    entry = store.get_entry("p1", 1)
    assert entry.original.strokes == 4
    assert entry.current.strokes == 5
    assert entry.is_dirty
    assert store.save_status is SaveStatus.IDLE
    assert backup.load(ROUND_ID).entries["p1-1"].strokes == 5


def test_validation_errors():
    store = make_store()

    with pytest.raises(ValueError):
        store.update_strokes("p1", 1, 16)
    with pytest.raises(ValueError):
        store.update_strokes("p1", 1, 0)
    with pytest.raises(ValueError):
        store.update_strokes("p1", 1, True)
    with pytest.raises(ValueError):
        store.update_putts("p1", 1, -1)
    with pytest.raises(ValueError):
        store.update_fairway_hit("p1", 2, True)
    with pytest.raises(UnknownEntry):
        store.update_strokes("p9", 1, 4)
    assert not store.is_dirty


def test_mutation_before_initialize_fails():
    with pytest.raises(StoreNotInitialized):
        ScoreEntryStore().update_strokes("p1", 1, 4)


def test_untracked_stats_survive_clear_and_backup():
    backup = MemoryBackup()
    store = make_store(backup, track_putts=False)
    store.update_strokes("p1", 1, 5)
    store.update_green_in_regulation("p1", 1, True)

    entry = store.clear_entry("p1", 1)
    assert entry.current.strokes is None
    assert entry.current.green_in_regulation is None
    assert entry.current.putts is NOT_TRACKED

    store.update_strokes("p1", 1, 6)
    assert "putts" not in store.get_entry("p1", 1).current.to_payload()

    restored = ScoreEntryStore(backup, track_putts=False)
    restored.initialize(ROUND_ID, server_entries(), server_modified_at=BASE_TIME)
    assert restored.get_entry("p1", 1).current.putts is NOT_TRACKED
    assert restored.get_entry("p1", 1).current.strokes == 6


def test_newer_local_backup_wins_reconciliation():
    backup = MemoryBackup()
    store = make_store(backup)
    store.update_strokes("p1", 1, 4)
    store.update_putts("p1", 1, 2)

    restored = ScoreEntryStore(backup)
    result = restored.initialize(ROUND_ID, server_entries(), server_modified_at=BASE_TIME)

    assert result.source is ReconcileSource.LOCAL
    assert result.dirty_count == 1
    entry = restored.get_entry("p1", 1)
    assert entry.current.strokes == 4
    assert entry.current.putts == 2
    assert entry.original.strokes is None


def test_partial_save_keeps_later_edit_across_restart():
    backup = MemoryBackup()
    store = make_store(backup)
    store.update_strokes("p1", 1, 4)
    sent = store.current_snapshot()["p1-1"]
    store.update_strokes("p1", 2, 3)

    # the server commit happens after both local edits
    committed = BASE_TIME + timedelta(minutes=1)
    store.mark_saved(committed, accepted={"p1-1": sent})
    assert backup.load(ROUND_ID).lastSavedAt == committed

    restored = ScoreEntryStore(backup)
    result = restored.initialize(
        ROUND_ID, server_entries({("p1", 1): 4}), server_modified_at=committed
    )

    assert result.source is ReconcileSource.LOCAL
    assert restored.get_entry("p1", 2).current.strokes == 3
    assert [e.entry_id for e in restored.dirty_entries()] == ["p1-2"]
    assert restored.last_saved == committed


def test_partial_save_loses_to_a_later_server_write():
    backup = MemoryBackup()
    store = make_store(backup)
    store.update_strokes("p1", 1, 4)
    sent = store.current_snapshot()["p1-1"]
    store.update_strokes("p1", 2, 3)
    store.mark_saved(BASE_TIME + timedelta(minutes=1), accepted={"p1-1": sent})

    restored = ScoreEntryStore(backup)
    result = restored.initialize(
        ROUND_ID,
        server_entries({("p1", 1): 4, ("p1", 2): 5}),
        server_modified_at=BASE_TIME + timedelta(minutes=5),
    )

    assert result.source is ReconcileSource.SERVER
    assert restored.get_entry("p1", 2).current.strokes == 5
    assert backup.load(ROUND_ID) is None


def test_stale_local_backup_is_discarded():
    backup = MemoryBackup()
    store = make_store(backup)
    store.update_strokes("p1", 1, 4)

    restored = ScoreEntryStore(backup)
    result = restored.initialize(
        ROUND_ID,
        server_entries({("p1", 1): 6}),
        server_modified_at=BASE_TIME + timedelta(minutes=5),
    )

    assert result.source is ReconcileSource.SERVER
    assert restored.get_entry("p1", 1).current.strokes == 6
    assert not restored.is_dirty
    assert backup.load(ROUND_ID) is None


def test_exported_entries_reinitialize_an_equal_store():
    store = make_store()
    store.update_strokes("p1", 1, 4)
    store.update_strokes("p2", 3, 7)
    store.update_putts("p2", 3, 3)

    copy = ScoreEntryStore()
    copy.initialize(ROUND_ID, store.export_entries())

    assert copy.current_snapshot() == store.current_snapshot()
    assert not copy.is_dirty


def test_totals_and_score_to_par():
    store = make_store()
    store.update_strokes("p1", 1, 4)
    store.update_strokes("p1", 2, 4)

    assert store.score_to_par("p1") == 1
    assert store.score_to_par("p1", through_hole=1) == 0
    assert store.front_nine_to_par("p1") == 1
    assert store.back_nine_to_par("p1") is None
    assert store.total_strokes("p1") == 8
    assert store.score_to_par("p2") is None


def test_participant_order_is_persisted_and_restored():
    backup = MemoryBackup()
    store = make_store(backup)
    store.move_participant(0, 1)
    assert store.participant_order == ["p2", "p1"]
    assert backup.load_order(ROUND_ID) == ["p2", "p1"]

    reopened = ScoreEntryStore(backup)
    reopened.initialize(ROUND_ID, server_entries())
    assert reopened.participant_order == ["p2", "p1"]

    with pytest.raises(ValueError):
        reopened.set_participant_order(["p1"])

    reopened.reset()
    assert backup.load_order(ROUND_ID) is None
    assert not reopened.initialized


def test_listeners_are_notified_until_unsubscribed():
    store = make_store()
    seen = []
    unsubscribe = store.subscribe(lambda entry: seen.append(entry.entry_id))

    store.update_strokes("p1", 1, 4)
    unsubscribe()
    store.update_strokes("p1", 1, 5)

    assert seen == ["p1-1"]


def test_grid_navigation():
    store = make_store()
    store.focus(Cell("p1", 1))

    assert store.navigate("right") == Cell("p1", 2)
    assert store.navigate("down") == Cell("p2", 2)
    assert store.navigate("down") == Cell("p2", 2)
    assert store.navigate("left") == Cell("p2", 1)
    assert store.next_cell() == Cell("p1", 2)
    assert store.prev_cell() == Cell("p2", 1)
    assert store.next_participant() == Cell("p1", 1)
    assert store.prev_participant() == Cell("p2", 1)
    assert store.prev_hole() == Cell("p2", 1)

    store.focus(Cell("p2", 3))
    assert store.next_cell() == Cell("p2", 3)
    assert store.next_hole() == Cell("p2", 3)

    with pytest.raises(ValueError):
        store.navigate("diagonal")
    with pytest.raises(UnknownEntry):
        store.focus(Cell("p9", 1))


class _BrokenBackup(MemoryBackup):
    def save(self, snapshot):
        raise OSError("disk full")


def test_backup_failure_does_not_lose_the_edit(caplog):
    store = make_store(_BrokenBackup())

    with caplog.at_level(logging.WARNING):
        store.update_strokes("p1", 1, 4)

    assert store.get_entry("p1", 1).current.strokes == 4
    assert "Failed to write local backup" in caplog.text
