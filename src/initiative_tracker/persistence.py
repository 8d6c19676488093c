"""Board checkpoint storage: a get/set byte store plus the JSON board encoding."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Protocol

from pydantic import ValidationError as SchemaError

from initiative_tracker.errors import PersistenceError
from initiative_tracker.schema import Board, BoardDocument


class BoardStorage(Protocol):
    def load(self) -> Optional[bytes]: ...

    def save(self, payload: bytes) -> None: ...


def encode_board(board: Board) -> bytes:
    doc = BoardDocument.from_board(board)
    return doc.model_dump_json().encode("utf-8")


def decode_board(payload: bytes) -> BoardDocument:
    try:
        return BoardDocument.model_validate_json(payload)
    except SchemaError as exc:
        problems = exc.error_count()
        raise PersistenceError(f"stored board is not readable: {problems} error(s)") from exc


class FileBoardStorage:
    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[bytes]:
        if not self._path.exists():
            return None
        try:
            return self._path.read_bytes()
        except OSError as exc:
            raise PersistenceError(f"cannot read {self._path}: {exc}") from exc

    def save(self, payload: bytes) -> None:
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            tmp.replace(self._path)
        except OSError as exc:
            raise PersistenceError(f"cannot write {self._path}: {exc}") from exc


class MemoryBoardStorage:
    def __init__(self, payload: Optional[bytes] = None) -> None:
        self.payload = payload
        self.saves = 0

    def load(self) -> Optional[bytes]:
        return self.payload

    def save(self, payload: bytes) -> None:
        self.payload = payload
        self.saves += 1
