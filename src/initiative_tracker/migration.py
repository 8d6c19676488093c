"""Load-time remap of the legacy stage vocabulary onto the current stages."""

from __future__ import annotations

import logging
from typing import Dict, Final, List, Mapping, Sequence, Tuple

from initiative_tracker.schema import (
    DEFAULT_STAGE,
    STAGE_NAMES,
    Board,
    BoardDocument,
    Stage,
    parse_stage,
)

logger = logging.getLogger(__name__)

LEGACY_STAGE_MAP: Final[Dict[str, Stage]] = {
    "Idea": Stage.DEV,
    "Planning": Stage.DEV,
    "Development": Stage.DEV,
    "QA": Stage.QA,
    "Production": Stage.PROD,
}


def needs_migration(columns: Mapping[str, Sequence[str]]) -> bool:
    """True when any column key is outside the current stage enumeration."""
    return any(str(name) not in STAGE_NAMES for name in columns)


def target_stage(name: str) -> Stage:
    mapped = LEGACY_STAGE_MAP.get(name)
    if mapped is not None:
        return mapped
    return parse_stage(name) or DEFAULT_STAGE


def migrate_columns(columns: Mapping[str, Sequence[str]]) -> Dict[Stage, Tuple[str, ...]]:
    merged: Dict[Stage, List[str]] = {stage: [] for stage in Stage}
    for name, ids in columns.items():
        stage = target_stage(str(name))
        if name not in LEGACY_STAGE_MAP and parse_stage(name) is None:
            logger.warning(
                "Unmapped stage %r: %d initiative(s) moved to %s", name, len(ids), stage.value
            )
        merged[stage].extend(ids)
    return {stage: tuple(ids) for stage, ids in merged.items()}


def board_from_document(doc: BoardDocument) -> Tuple[Board, bool]:
    """Build a Board from a persisted document, migrating legacy stages if present.

    Returns the board and whether a migration was applied. Initiatives are
    never dropped; only `columns` is rewritten.
    """
    if not needs_migration(doc.columns):
        columns = {Stage(name): tuple(ids) for name, ids in doc.columns.items()}
        return Board(initiatives=dict(doc.initiatives), columns=columns), False

    logger.info(
        "Migrating legacy stages %s",
        ", ".join(sorted(name for name in doc.columns if name not in STAGE_NAMES)),
    )
    return Board(initiatives=dict(doc.initiatives), columns=migrate_columns(doc.columns)), True
