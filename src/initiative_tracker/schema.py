"""Typed schema models for the initiative board and its persisted document."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Final, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    DEV = "DEV"
    QA = "QA"
    DEMO = "DEMO"
    UAT = "UAT"
    CHANGE_TICKET = "Change Ticket"
    PROD = "PROD"


STAGES: Final[Tuple[Stage, ...]] = (
    Stage.DEV,
    Stage.QA,
    Stage.DEMO,
    Stage.UAT,
    Stage.CHANGE_TICKET,
    Stage.PROD,
)
DEFAULT_STAGE: Final[Stage] = STAGES[0]
STAGE_NAMES: Final[frozenset[str]] = frozenset(s.value for s in STAGES)


class InitiativeStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    DONE = "done"


STATUS_NAMES: Final[frozenset[str]] = frozenset(s.value for s in InitiativeStatus)


def parse_stage(value: object) -> Stage | None:
    """Return the Stage named by `value`, or None for anything outside the enumeration."""
    if isinstance(value, Stage):
        return value
    txt = str(value or "")
    if txt not in STAGE_NAMES:
        return None
    return Stage(txt)


def empty_columns() -> Dict[Stage, Tuple[str, ...]]:
    return {stage: () for stage in STAGES}


# -----------------------------
# Board
# -----------------------------
class Initiative(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    title: str = ""
    description: str = ""
    status: InitiativeStatus = InitiativeStatus.NOT_STARTED
    # Ordered, duplicates and dangling ids allowed.
    dependencies: Tuple[str, ...] = ()

    @field_validator("description", mode="before")
    @classmethod
    def none_description_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("dependencies", mode="before")
    @classmethod
    def none_dependencies_as_empty(cls, value: Any) -> Any:
        return () if value is None else value


class Board(BaseModel):
    """Immutable board value: every operation returns a new instance."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    initiatives: Dict[str, Initiative] = Field(default_factory=dict)
    columns: Dict[Stage, Tuple[str, ...]] = Field(default_factory=empty_columns)

    @field_validator("columns", mode="after")
    @classmethod
    def complete_columns(cls, value: Dict[Stage, Tuple[str, ...]]) -> Dict[Stage, Tuple[str, ...]]:
        return {stage: tuple(value.get(stage, ())) for stage in STAGES}

    @staticmethod
    def empty() -> "Board":
        return Board(initiatives={}, columns=empty_columns())


class BoardDocument(BaseModel):
    """Persisted shape of a board; `columns` may still carry legacy stage names."""

    model_config = ConfigDict(extra="ignore")

    initiatives: Dict[str, Initiative] = Field(default_factory=dict)
    columns: Dict[str, List[str]] = Field(default_factory=dict)

    @field_validator("initiatives", mode="before")
    @classmethod
    def normalize_records(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        out: Dict[str, Any] = {}
        for key, record in value.items():
            if isinstance(record, dict):
                record = dict(record)
                if not record.get("id"):
                    record["id"] = str(key)
                status = record.get("status")
                if status is None:
                    record.pop("status", None)
                elif not isinstance(status, str) or status not in STATUS_NAMES:
                    # Older boards stored free-form status text; keep the record.
                    logger.warning(
                        "Initiative %s: unknown status %r stored as %s",
                        record["id"],
                        status,
                        InitiativeStatus.NOT_STARTED.value,
                    )
                    record["status"] = InitiativeStatus.NOT_STARTED.value
            out[str(key)] = record
        return out

    @field_validator("columns", mode="before")
    @classmethod
    def none_columns_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @staticmethod
    def from_board(board: Board) -> "BoardDocument":
        return BoardDocument(
            initiatives=dict(board.initiatives),
            columns={stage.value: list(ids) for stage, ids in board.columns.items()},
        )
