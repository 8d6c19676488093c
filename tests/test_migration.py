from __future__ import annotations

from initiative_tracker.migration import (
    board_from_document,
    migrate_columns,
    needs_migration,
    target_stage,
)
from initiative_tracker.schema import STAGES, BoardDocument, Initiative, Stage


def _doc(columns: dict[str, list[str]]) -> BoardDocument:
    ids = [iid for seq in columns.values() for iid in seq]
    return BoardDocument(
        initiatives={iid: Initiative(id=iid, title=iid.upper()) for iid in ids},
        columns=columns,
    )


def test_needs_migration_only_for_unknown_stage_keys() -> None:
    assert needs_migration({"Development": []})
    assert needs_migration({"DEV": [], "Backlog": []})
    assert not needs_migration({"DEV": [], "Change Ticket": []})
    assert not needs_migration({})


def test_target_stage_mapping() -> None:
    assert target_stage("Idea") == Stage.DEV
    assert target_stage("Planning") == Stage.DEV
    assert target_stage("Development") == Stage.DEV
    assert target_stage("QA") == Stage.QA
    assert target_stage("Production") == Stage.PROD
    assert target_stage("UAT") == Stage.UAT
    assert target_stage("Somewhere else") == Stage.DEV


def test_legacy_development_lands_in_dev() -> None:
    board, migrated = board_from_document(_doc({"Development": ["y"]}))

    assert migrated
    assert "y" in board.columns[Stage.DEV]
    assert "Development" not in {s.value for s in board.columns}
    assert set(board.columns) == set(STAGES)


def test_migration_merges_in_encounter_order_and_keeps_everything() -> None:
    doc = _doc(
        {
            "Idea": ["i1", "i2"],
            "QA": ["q1"],
            "Planning": ["p1"],
            "Archive": ["z1"],
            "Production": ["pr1"],
        }
    )
    board, migrated = board_from_document(doc)

    assert migrated
    assert board.columns[Stage.DEV] == ("i1", "i2", "p1", "z1")
    assert board.columns[Stage.QA] == ("q1",)
    assert board.columns[Stage.PROD] == ("pr1",)
    assert board.initiatives == doc.initiatives


def test_migrate_columns_prepopulates_every_stage() -> None:
    out = migrate_columns({"Idea": ["a"]})
    assert list(out) == list(STAGES)
    assert out[Stage.DEMO] == ()


def test_current_document_is_normalized_without_migrating() -> None:
    board, migrated = board_from_document(_doc({"QA": ["a"], "DEV": ["b"]}))

    assert not migrated
    assert board.columns[Stage.QA] == ("a",)
    assert board.columns[Stage.DEV] == ("b",)
    assert board.columns[Stage.CHANGE_TICKET] == ()
    assert list(board.columns) == list(STAGES)


def test_migration_is_idempotent() -> None:
    once, _ = board_from_document(_doc({"Idea": ["a"], "Production": ["b"]}))
    twice, migrated_again = board_from_document(BoardDocument.from_board(once))

    assert not migrated_again
    assert twice == once
