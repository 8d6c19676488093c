"""Board mutations: create, update, delete and move.

Every function takes the current Board and returns a new one; the input is
never modified. Failures raise before any new value is built, so callers keep
the prior board untouched.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as SchemaError

from initiative_tracker.errors import NotFoundError, ValidationError
from initiative_tracker.schema import Board, Initiative, InitiativeStatus, Stage, parse_stage

_ModelT = TypeVar("_ModelT", bound=BaseModel)

_last_issued_ms = 0


# -----------------------------
# Inputs
# -----------------------------
class InitiativeDraft(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str
    description: str = ""
    status: InitiativeStatus = InitiativeStatus.NOT_STARTED
    dependencies: List[str] = Field(default_factory=list)


class InitiativePatch(BaseModel):
    """Partial update; unset and null fields are left alone.

    A null title is the exception: it is kept so it fails title validation.
    """

    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[InitiativeStatus] = None
    dependencies: Optional[List[str]] = None

    def changes(self) -> Dict[str, Any]:
        data = self.model_dump(exclude_unset=True)
        return {k: v for k, v in data.items() if v is not None or k == "title"}


@dataclass(frozen=True)
class DropLocation:
    stage: Stage
    index: int


@dataclass(frozen=True)
class DragResult:
    initiative_id: str
    source: DropLocation
    # None when the card was released outside any column.
    destination: Optional[DropLocation]


FieldsArg = Union[Mapping[str, Any], BaseModel, None]


def _coerce_fields(model: Type[_ModelT], fields: FieldsArg) -> _ModelT:
    if isinstance(fields, model):
        return fields
    if isinstance(fields, BaseModel):
        fields = fields.model_dump(exclude_unset=True)
    try:
        return model.model_validate(dict(fields or {}))
    except SchemaError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'fields'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ValidationError(problems) from exc


def _require_title(title: str) -> None:
    if not str(title or "").strip():
        raise ValidationError("title must not be empty")


def _require_stage(value: Union[Stage, str]) -> Stage:
    stage = parse_stage(value)
    if stage is None:
        raise ValidationError(f"unknown stage {value!r}")
    return stage


def new_initiative_id(existing: Iterable[str] = ()) -> str:
    """Millisecond timestamp id, strictly increasing within the process."""
    global _last_issued_ms
    taken = set(existing)
    candidate = max(int(time.time() * 1000), _last_issued_ms + 1)
    while str(candidate) in taken:
        candidate += 1
    _last_issued_ms = candidate
    return str(candidate)


# -----------------------------
# Operations
# -----------------------------
def create_initiative(board: Board, stage: Union[Stage, str], fields: FieldsArg) -> Board:
    target = _require_stage(stage)
    draft = _coerce_fields(InitiativeDraft, fields)
    _require_title(draft.title)

    iid = new_initiative_id(board.initiatives)
    item = Initiative(id=iid, **draft.model_dump())

    initiatives = dict(board.initiatives)
    initiatives[iid] = item
    columns = dict(board.columns)
    columns[target] = (iid,) + columns[target]
    return board.model_copy(update={"initiatives": initiatives, "columns": columns})


def update_initiative(board: Board, initiative_id: str, fields: FieldsArg) -> Board:
    current = board.initiatives.get(initiative_id)
    if current is None:
        raise NotFoundError(initiative_id)

    changes = _coerce_fields(InitiativePatch, fields).changes()
    if "title" in changes:
        _require_title(changes["title"])
    if "dependencies" in changes:
        changes["dependencies"] = tuple(changes["dependencies"])

    updated = current.model_copy(update=changes)
    if updated == current:
        return board

    initiatives = dict(board.initiatives)
    initiatives[initiative_id] = updated
    return board.model_copy(update={"initiatives": initiatives})


def delete_initiative(board: Board, initiative_id: str) -> Board:
    """Remove an initiative everywhere; deleting an absent id returns `board` as is.

    Dependencies pointing at the removed id are left dangling.
    """
    placed = any(initiative_id in ids for ids in board.columns.values())
    if initiative_id not in board.initiatives and not placed:
        return board

    initiatives = {k: v for k, v in board.initiatives.items() if k != initiative_id}
    columns = {
        stage: tuple(iid for iid in ids if iid != initiative_id)
        for stage, ids in board.columns.items()
    }
    return board.model_copy(update={"initiatives": initiatives, "columns": columns})


def _splice(
    board: Board, source: Stage, source_index: int, destination: Stage, destination_index: int
) -> Board:
    columns: Dict[Stage, Tuple[str, ...]] = dict(board.columns)

    src = list(columns[source])
    moved = src.pop(source_index)
    columns[source] = tuple(src)

    dst = list(columns[destination])
    at = min(max(int(destination_index), 0), len(dst))
    dst.insert(at, moved)
    columns[destination] = tuple(dst)

    if columns == board.columns:
        return board
    return board.model_copy(update={"columns": columns})


def move_initiative(
    board: Board,
    initiative_id: str,
    from_stage: Union[Stage, str],
    to_stage: Union[Stage, str],
    to_index: int,
) -> Board:
    """Move an initiative within or across stages.

    The destination index is clamped to the destination column after removal.
    Transitions are allowed in any direction.
    """
    source = _require_stage(from_stage)
    destination = _require_stage(to_stage)
    if initiative_id not in board.initiatives:
        raise NotFoundError(initiative_id)
    ids = board.columns[source]
    if initiative_id not in ids:
        raise NotFoundError(
            initiative_id, f"Initiative {initiative_id!r} is not in stage {source.value}"
        )

    source_index = ids.index(initiative_id)
    if source == destination and source_index == to_index:
        return board
    return _splice(board, source, source_index, destination, to_index)


def apply_drag_result(board: Board, result: DragResult) -> Board:
    """Apply a finished drag gesture; cancelled or in-place drops change nothing."""
    if result.destination is None or result.destination == result.source:
        return board

    source = _require_stage(result.source.stage)
    destination = _require_stage(result.destination.stage)
    ids = board.columns[source]
    index = result.source.index
    if not 0 <= index < len(ids) or ids[index] != result.initiative_id:
        raise NotFoundError(
            result.initiative_id,
            f"Initiative {result.initiative_id!r} is not at {source.value}[{index}]",
        )
    return _splice(board, source, index, destination, result.destination.index)
