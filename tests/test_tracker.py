from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import pytest

from initiative_tracker.errors import NotFoundError, ParseError, PersistenceError, ValidationError
from initiative_tracker.mutations import DragResult, DropLocation
from initiative_tracker.persistence import FileBoardStorage, MemoryBoardStorage, decode_board
from initiative_tracker.schema import Board, InitiativeStatus, Stage
from initiative_tracker.tracker import BoardTracker, load_board


class _FailingStorage:
    def __init__(self, payload: Optional[bytes] = None, *, fail_load: bool = False) -> None:
        self.payload = payload
        self.fail_load = fail_load

    def load(self) -> Optional[bytes]:
        if self.fail_load:
            raise PersistenceError("disk unavailable")
        return self.payload

    def save(self, payload: bytes) -> None:
        raise PersistenceError("disk full")


def _legacy_payload() -> bytes:
    return json.dumps(
        {
            "initiatives": {"y": {"id": "y", "title": "Legacy"}},
            "columns": {"Development": ["y"], "Production": []},
        }
    ).encode("utf-8")


def test_open_empty_storage_gives_empty_board_without_saving() -> None:
    storage = MemoryBoardStorage()
    tracker = BoardTracker.open(storage)

    assert tracker.board == Board.empty()
    assert storage.saves == 0


def test_open_migrates_and_persists_once() -> None:
    storage = MemoryBoardStorage(_legacy_payload())

    tracker = BoardTracker.open(storage)

    assert tracker.column(Stage.DEV) == ("y",)
    assert storage.saves == 1
    assert storage.payload is not None
    saved = decode_board(storage.payload)
    assert "Development" not in saved.columns
    assert saved.columns["DEV"] == ["y"]

    BoardTracker.open(storage)
    assert storage.saves == 1


@pytest.mark.parametrize(
    "storage",
    [
        MemoryBoardStorage(b"{broken"),
        _FailingStorage(fail_load=True),
    ],
)
def test_open_falls_back_to_empty_board(storage, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="initiative_tracker"):
        board, migrated = load_board(storage)
    assert board == Board.empty()
    assert not migrated
    assert "Falling back to an empty board" in caplog.text


def test_scenario_create_update_move_is_written_through(tmp_path: Path) -> None:
    path = tmp_path / "board.json"
    tracker = BoardTracker.open(FileBoardStorage(path))

    item = tracker.create("DEV", {"title": "Launch"})
    assert tracker.column(Stage.DEV) == (item.id,)

    updated = tracker.update(item.id, {"status": "done"})
    assert updated.status == InitiativeStatus.DONE
    assert tracker.column(Stage.DEV) == (item.id,)

    tracker.move(item.id, "DEV", "QA", 0)
    assert tracker.column(Stage.DEV) == ()
    assert tracker.column(Stage.QA) == (item.id,)

    reopened = BoardTracker.open(FileBoardStorage(path))
    assert reopened.board == tracker.board
    assert reopened.initiative(item.id).status == InitiativeStatus.DONE


def test_observers_see_changes_but_not_noops() -> None:
    storage = MemoryBoardStorage()
    tracker = BoardTracker.open(storage)
    seen: List[Board] = []
    unsubscribe = tracker.subscribe(seen.append)

    item = tracker.create(Stage.QA, {"title": "A"})
    tracker.move(item.id, Stage.QA, Stage.QA, 0)
    tracker.apply_drag(DragResult(item.id, DropLocation(Stage.QA, 0), None))
    tracker.delete("missing")

    assert len(seen) == 1
    assert storage.saves == 1

    unsubscribe()
    tracker.delete(item.id)
    assert len(seen) == 1
    assert storage.saves == 2


def test_failed_mutations_leave_board_and_storage_untouched() -> None:
    storage = MemoryBoardStorage()
    tracker = BoardTracker.open(storage)
    item = tracker.create("DEV", {"title": "A"})
    before = tracker.board

    with pytest.raises(ValidationError):
        tracker.create("DEV", {"title": " "})
    with pytest.raises(ValidationError):
        tracker.update(item.id, {"title": ""})
    with pytest.raises(NotFoundError):
        tracker.update("missing", {"title": "x"})
    with pytest.raises(NotFoundError):
        tracker.move("missing", "DEV", "QA", 0)
    with pytest.raises(ParseError):
        tracker.import_csv(b"")

    assert tracker.board is before
    assert storage.saves == 1


def test_save_failure_keeps_memory_state(caplog: pytest.LogCaptureFixture) -> None:
    tracker = BoardTracker.open(_FailingStorage())

    with caplog.at_level(logging.ERROR, logger="initiative_tracker"):
        item = tracker.create("UAT", {"title": "Still here"})

    assert tracker.column(Stage.UAT) == (item.id,)
    assert isinstance(tracker.last_save_error, PersistenceError)
    assert "Board checkpoint failed" in caplog.text


def test_import_replaces_board_and_export_round_trips() -> None:
    tracker = BoardTracker.open(MemoryBoardStorage())
    old = tracker.create("DEV", {"title": "Old"})

    tracker.import_csv("id,title,stage,dependencies\n1,Foo,QA,\"2,3\"\n")

    assert old.id not in tracker.board.initiatives
    assert tracker.column(Stage.QA) == ("1",)
    assert tracker.dependency_titles("1") == ["Unknown", "Unknown"]

    exported = tracker.export_csv()
    other = BoardTracker.open(MemoryBoardStorage())
    other.import_csv(exported)
    assert other.board == tracker.board


def test_open_keeps_records_with_unknown_stored_status(
    caplog: pytest.LogCaptureFixture,
) -> None:
    payload = json.dumps(
        {
            "initiatives": {
                "1": {"id": "1", "title": "Kept", "status": "not_started"},
                "2": {"id": "2", "title": "Legacy", "status": "Done"},
            },
            "columns": {"DEV": ["1", "2"]},
        }
    ).encode("utf-8")
    storage = MemoryBoardStorage(payload)

    with caplog.at_level(logging.WARNING, logger="initiative_tracker"):
        tracker = BoardTracker.open(storage)
    tracker.create("QA", {"title": "New"})

    assert tracker.column(Stage.DEV) == ("1", "2")
    assert tracker.initiative("2").status == InitiativeStatus.NOT_STARTED
    assert "unknown status 'Done'" in caplog.text
    assert "Falling back" not in caplog.text
    assert storage.payload is not None
    assert {"1", "2"} <= set(decode_board(storage.payload).initiatives)


def test_failing_observer_does_not_block_save_or_other_observers(
    caplog: pytest.LogCaptureFixture,
) -> None:
    storage = MemoryBoardStorage()
    tracker = BoardTracker.open(storage)
    seen: List[Board] = []

    def _broken(board: Board) -> None:
        raise RuntimeError("observer bug")

    tracker.subscribe(_broken)
    tracker.subscribe(seen.append)

    with caplog.at_level(logging.ERROR, logger="initiative_tracker"):
        item = tracker.create("DEV", {"title": "a"})

    assert tracker.column(Stage.DEV) == (item.id,)
    assert storage.saves == 1
    assert seen == [tracker.board]
    assert "Board observer" in caplog.text


class _FlakyStorage(MemoryBoardStorage):
    def __init__(self) -> None:
        super().__init__()
        self.broken = True

    def save(self, payload: bytes) -> None:
        if self.broken:
            raise PersistenceError("disk full")
        super().save(payload)


def test_manual_save_retries_failed_checkpoint() -> None:
    storage = _FlakyStorage()
    tracker = BoardTracker.open(storage)
    item = tracker.create("DEV", {"title": "Pending"})
    assert tracker.last_save_error is not None
    assert not tracker.save()

    storage.broken = False
    assert tracker.save()

    assert tracker.last_save_error is None
    assert storage.payload is not None
    assert item.id in decode_board(storage.payload).initiatives
