"""Single owner of the live Board value with write-through persistence."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple, Union

from initiative_tracker import board as board_ops
from initiative_tracker import csv_codec
from initiative_tracker.errors import PersistenceError
from initiative_tracker.migration import board_from_document
from initiative_tracker.mutations import (
    DragResult,
    FieldsArg,
    apply_drag_result,
    create_initiative,
    delete_initiative,
    move_initiative,
    update_initiative,
)
from initiative_tracker.persistence import BoardStorage, decode_board, encode_board
from initiative_tracker.schema import Board, Initiative, Stage

logger = logging.getLogger(__name__)

BoardObserver = Callable[[Board], None]


def load_board(storage: BoardStorage) -> Tuple[Board, bool]:
    """Read, decode and migrate the stored board.

    Returns the board and whether it was migrated. Any storage or decoding
    failure degrades to an empty board.
    """
    try:
        payload = storage.load()
        if payload is None:
            return Board.empty(), False
        board, migrated = board_from_document(decode_board(payload))
    except PersistenceError as exc:
        logger.warning("Falling back to an empty board: %s", exc)
        return Board.empty(), False

    for problem in board_ops.invariant_violations(board):
        logger.warning("Stored board: %s", problem)
    return board, migrated


class BoardTracker:
    """Holds the current board; every accepted change is published and saved.

    Mutation errors propagate to the caller and leave the board untouched.
    """

    def __init__(self, storage: BoardStorage, board: Optional[Board] = None) -> None:
        self._storage = storage
        self._board = board if board is not None else Board.empty()
        self._observers: List[BoardObserver] = []
        self.last_save_error: Optional[PersistenceError] = None

    @classmethod
    def open(cls, storage: BoardStorage) -> "BoardTracker":
        board, migrated = load_board(storage)
        tracker = cls(storage, board)
        if migrated:
            # Persist right away so the migration does not run again.
            tracker.save()
        return tracker

    # -------------------------
    # Reads
    # -------------------------
    @property
    def board(self) -> Board:
        return self._board

    def column(self, stage: Stage) -> Tuple[str, ...]:
        return board_ops.column(self._board, stage)

    def initiative(self, initiative_id: str) -> Initiative:
        return board_ops.get_initiative(self._board, initiative_id)

    def dependency_titles(self, initiative_id: str) -> List[str]:
        return board_ops.dependency_titles(self._board, initiative_id)

    def export_csv(self) -> bytes:
        return csv_codec.export_csv(self._board)

    # -------------------------
    # Changes
    # -------------------------
    def subscribe(self, observer: BoardObserver) -> Callable[[], None]:
        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    def save(self) -> bool:
        try:
            self._storage.save(encode_board(self._board))
        except PersistenceError as exc:
            logger.error("Board checkpoint failed: %s", exc)
            self.last_save_error = exc
            return False
        self.last_save_error = None
        return True

    def _commit(self, new_board: Board) -> Board:
        if new_board is self._board:
            return new_board
        self._board = new_board
        self.save()
        for observer in list(self._observers):
            try:
                observer(new_board)
            except Exception:
                logger.exception("Board observer %r failed", observer)
        return new_board

    def create(self, stage: Union[Stage, str], fields: FieldsArg) -> Initiative:
        before = self._board
        after = self._commit(create_initiative(before, stage, fields))
        (new_id,) = set(after.initiatives) - set(before.initiatives)
        logger.debug("Created initiative %s", new_id)
        return after.initiatives[new_id]

    def update(self, initiative_id: str, fields: FieldsArg) -> Initiative:
        board = self._commit(update_initiative(self._board, initiative_id, fields))
        return board.initiatives[initiative_id]

    def delete(self, initiative_id: str) -> None:
        self._commit(delete_initiative(self._board, initiative_id))

    def move(
        self,
        initiative_id: str,
        from_stage: Union[Stage, str],
        to_stage: Union[Stage, str],
        to_index: int,
    ) -> Board:
        return self._commit(
            move_initiative(self._board, initiative_id, from_stage, to_stage, to_index)
        )

    def apply_drag(self, result: DragResult) -> Board:
        return self._commit(apply_drag_result(self._board, result))

    def import_csv(self, data: Union[bytes, str]) -> Board:
        """Replace the whole board with the parsed CSV; a ParseError keeps the current one."""
        imported = csv_codec.import_csv(data)
        logger.info("Imported %d initiative(s) from CSV", len(imported.initiatives))
        return self._commit(imported)
