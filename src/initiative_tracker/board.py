"""Read accessors over a Board value and invariant checks."""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from initiative_tracker.errors import NotFoundError
from initiative_tracker.schema import Board, Initiative, Stage

UNKNOWN_DEPENDENCY_TITLE = "Unknown"


def column(board: Board, stage: Stage) -> Tuple[str, ...]:
    return board.columns.get(stage, ())


def get_initiative(board: Board, initiative_id: str) -> Initiative:
    try:
        return board.initiatives[initiative_id]
    except KeyError:
        raise NotFoundError(initiative_id) from None


def stage_of(board: Board, initiative_id: str) -> Optional[Stage]:
    for stage, ids in board.columns.items():
        if initiative_id in ids:
            return stage
    return None


def orphaned_ids(board: Board) -> List[str]:
    """Ids present in `initiatives` but placed in no stage."""
    placed = {iid for ids in board.columns.values() for iid in ids}
    return [iid for iid in board.initiatives if iid not in placed]


def dependency_titles(board: Board, initiative_id: str) -> List[str]:
    item = get_initiative(board, initiative_id)
    out: List[str] = []
    for dep_id in item.dependencies:
        dep = board.initiatives.get(dep_id)
        out.append(dep.title if dep is not None else UNKNOWN_DEPENDENCY_TITLE)
    return out


def invariant_violations(board: Board) -> List[str]:
    problems: List[str] = []
    seen: Dict[str, Stage] = {}
    for stage, ids in board.columns.items():
        for iid in ids:
            if iid not in board.initiatives:
                problems.append(f"{stage.value}: unknown initiative {iid!r}")
            if iid in seen:
                problems.append(
                    f"{stage.value}: initiative {iid!r} already placed in {seen[iid].value}"
                )
            else:
                seen[iid] = stage
    return problems
