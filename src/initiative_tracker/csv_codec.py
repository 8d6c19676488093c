"""CSV export/import of a whole board (one row per initiative)."""

from __future__ import annotations

import io
import logging
from datetime import datetime
from typing import Any, Dict, Final, List, Set, Union

import pandas as pd

from initiative_tracker.board import orphaned_ids
from initiative_tracker.errors import ParseError
from initiative_tracker.schema import (
    STAGES,
    Board,
    Initiative,
    InitiativeStatus,
    Stage,
    parse_stage,
)

logger = logging.getLogger(__name__)

CSV_COLUMNS: Final[List[str]] = ["id", "title", "description", "status", "stage", "dependencies"]
# Ids are never escaped, so they must not contain the delimiter.
DEPENDENCY_DELIMITER: Final[str] = ","
CSV_ENCODING: Final[str] = "utf-8"


# -------------------------
# Filenames
# -------------------------
def _safe_filename(s: str) -> str:
    s = (s or "").strip().replace(" ", "_")
    keep = []
    for ch in s:
        if ch.isalnum() or ch in {"_", "-", "."}:
            keep.append(ch)
    return "".join(keep) or "export"


def export_filename(prefix: str = "initiatives", *, now: datetime | None = None) -> str:
    ts = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return f"{_safe_filename(prefix)}_{ts}.csv"


# -------------------------
# Export
# -------------------------
def _row(item: Initiative, stage: str) -> Dict[str, str]:
    return {
        "id": item.id,
        "title": item.title,
        "description": item.description,
        "status": item.status.value,
        "stage": stage,
        "dependencies": DEPENDENCY_DELIMITER.join(item.dependencies),
    }


def board_to_frame(board: Board) -> pd.DataFrame:
    """Flatten the board in display order: stages, column order, then orphans."""
    rows: List[Dict[str, str]] = []
    emitted: Set[str] = set()
    for stage in STAGES:
        for iid in board.columns.get(stage, ()):
            item = board.initiatives.get(iid)
            if item is None or iid in emitted:
                continue
            emitted.add(iid)
            rows.append(_row(item, stage.value))
    for iid in orphaned_ids(board):
        rows.append(_row(board.initiatives[iid], ""))
    return pd.DataFrame(rows, columns=CSV_COLUMNS)


def export_csv(board: Board) -> bytes:
    csv: str = board_to_frame(board).to_csv(index=False, lineterminator="\n")
    return csv.encode(CSV_ENCODING, errors="replace")


# -------------------------
# Import
# -------------------------
def _cell(value: Any) -> str:
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value)


def _split_dependencies(raw: str) -> List[str]:
    return [token for token in raw.split(DEPENDENCY_DELIMITER) if token]


def read_frame(data: Union[bytes, str]) -> pd.DataFrame:
    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ParseError(f"file is not valid UTF-8 ({exc.reason})") from exc
    else:
        text = data
    if not text.strip():
        raise ParseError("file is empty")

    try:
        df = pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            na_filter=False,
            index_col=False,
            skip_blank_lines=True,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise ParseError(str(exc).strip()) from exc
    df.columns = [str(c).strip() for c in df.columns]
    return df


def import_csv(data: Union[bytes, str]) -> Board:
    """Parse a CSV export into a brand new Board.

    Rows without an id are skipped. Rows whose stage is not a current stage
    are kept as initiatives but placed in no column. When an id repeats, the
    last row wins for both the record and the placement.
    """
    df = read_frame(data)

    initiatives: Dict[str, Initiative] = {}
    columns: Dict[Stage, List[str]] = {stage: [] for stage in STAGES}
    placed_in: Dict[str, Stage] = {}
    skipped = 0

    # Line 1 is the header.
    for line_no, row in enumerate(df.to_dict(orient="records"), start=2):
        iid = _cell(row.get("id"))
        if not iid:
            skipped += 1
            continue

        status_raw = _cell(row.get("status")) or InitiativeStatus.NOT_STARTED.value
        try:
            status = InitiativeStatus(status_raw)
        except ValueError:
            raise ParseError(f"unknown status {status_raw!r}", row=line_no) from None

        initiatives[iid] = Initiative(
            id=iid,
            title=_cell(row.get("title")),
            description=_cell(row.get("description")),
            status=status,
            dependencies=tuple(_split_dependencies(_cell(row.get("dependencies")))),
        )

        previous = placed_in.pop(iid, None)
        if previous is not None:
            columns[previous].remove(iid)
        stage_raw = _cell(row.get("stage"))
        stage = parse_stage(stage_raw)
        if stage is None:
            if stage_raw:
                logger.warning(
                    "Row %d: unknown stage %r, %s left unplaced", line_no, stage_raw, iid
                )
            continue
        columns[stage].append(iid)
        placed_in[iid] = stage

    if skipped:
        logger.info("Skipped %d CSV row(s) without id", skipped)
    return Board(
        initiatives=initiatives,
        columns={stage: tuple(ids) for stage, ids in columns.items()},
    )
