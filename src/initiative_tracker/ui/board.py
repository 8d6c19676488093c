"""Streamlit rendering of the board: stage columns, cards and their forms."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, List

import streamlit as st

from initiative_tracker.config import Settings
from initiative_tracker.csv_codec import export_filename
from initiative_tracker.errors import TrackerError
from initiative_tracker.persistence import FileBoardStorage
from initiative_tracker.schema import STAGES, Initiative, InitiativeStatus, Stage
from initiative_tracker.tracker import BoardTracker
from initiative_tracker.ui.common import (
    card_html,
    chip_style_from_color,
    form_generation,
    reset_form,
    stage_color,
    stage_slug,
    status_label,
)

TRACKER_KEY = "__board_tracker"
TRACKER_PATH_KEY = "__board_tracker_path"
LAST_IMPORT_KEY = "__board_last_import"

_STATUS_OPTIONS: List[InitiativeStatus] = list(InitiativeStatus)


def get_tracker(settings: Settings) -> BoardTracker:
    """One tracker per browser session, reopened if BOARD_PATH changes."""
    path = str(settings.BOARD_PATH)
    tracker = st.session_state.get(TRACKER_KEY)
    if isinstance(tracker, BoardTracker) and st.session_state.get(TRACKER_PATH_KEY) == path:
        return tracker
    tracker = BoardTracker.open(FileBoardStorage(Path(path)))
    st.session_state[TRACKER_KEY] = tracker
    st.session_state[TRACKER_PATH_KEY] = path
    return tracker


def _run(action: Callable[..., Any], *args: Any) -> bool:
    try:
        action(*args)
    except TrackerError as exc:
        st.error(str(exc))
        return False
    return True


def _inject_board_css() -> None:
    st.markdown(
        """
        <style>
          .it-card { padding: 8px 10px; margin: 4px 0; border-radius: 8px;
                     border: 1px solid rgba(17,25,45,0.12); }
          .it-card-title { font-weight: 700; margin-bottom: 2px; }
          .it-card-desc { opacity: 0.85; font-size: 0.85rem; margin-bottom: 4px; }
          .it-card-deps { margin-top: 6px; font-size: 0.80rem; }
        </style>
        """,
        unsafe_allow_html=True,
    )


def render_toolbar(tracker: BoardTracker, settings: Settings) -> None:
    c1, c2, c3 = st.columns(3)
    with c1:
        st.download_button(
            label="Export CSV",
            data=tracker.export_csv(),
            file_name=export_filename(settings.EXPORT_FILENAME_PREFIX),
            mime="text/csv",
            key="board_export_csv",
            use_container_width=True,
        )
    with c2:
        uploaded = st.file_uploader("Import CSV", type=["csv"], key="board_import_csv")
        if uploaded is not None:
            marker = f"{uploaded.name}:{uploaded.size}"
            # The uploader keeps its value across reruns; import each file once.
            if st.session_state.get(LAST_IMPORT_KEY) != marker:
                st.session_state[LAST_IMPORT_KEY] = marker
                if _run(tracker.import_csv, uploaded.getvalue()):
                    st.rerun()
    with c3:
        if st.button("Save changes", key="board_save", use_container_width=True):
            if tracker.save():
                st.success("Board saved.")
            else:
                st.error(f"Board was not saved: {tracker.last_save_error}")
                return

    if tracker.last_save_error is not None:
        st.warning(f"Changes are kept in memory but were not saved: {tracker.last_save_error}")


def _dependency_options(tracker: BoardTracker, exclude: str = "") -> Dict[str, str]:
    return {
        iid: item.title or iid
        for iid, item in tracker.board.initiatives.items()
        if iid != exclude
    }


def _render_create_form(tracker: BoardTracker, stage: Stage) -> None:
    name = f"create__{stage_slug(stage)}"
    # Rejected input stays in the form; only a successful create clears it.
    key = f"{name}__{form_generation(st.session_state, name)}"
    with st.expander("Add initiative"):
        with st.form(key=key):
            title = st.text_input("Title", key=f"{key}__title")
            description = st.text_area("Description", height=80, key=f"{key}__desc")
            status = st.selectbox(
                "Status", _STATUS_OPTIONS, format_func=status_label, key=f"{key}__status"
            )
            options = _dependency_options(tracker)
            deps = st.multiselect(
                "Dependencies",
                list(options),
                format_func=lambda i: options.get(i, i),
                key=f"{key}__deps",
            )
            if st.form_submit_button("Save"):
                fields = {
                    "title": title,
                    "description": description,
                    "status": status,
                    "dependencies": deps,
                }
                if _run(tracker.create, stage, fields):
                    reset_form(st.session_state, name)
                    st.rerun()


def _render_card(tracker: BoardTracker, stage: Stage, index: int, item: Initiative) -> None:
    st.markdown(card_html(item, tracker.dependency_titles(item.id)), unsafe_allow_html=True)
    key = f"{stage_slug(stage)}__{item.id}"
    with st.expander("Edit"):
        with st.form(key=f"edit__{key}"):
            title = st.text_input("Title", value=item.title)
            description = st.text_area("Description", value=item.description, height=80)
            status = st.selectbox(
                "Status",
                _STATUS_OPTIONS,
                index=_STATUS_OPTIONS.index(item.status),
                format_func=status_label,
            )
            options = _dependency_options(tracker, exclude=item.id)
            # Dangling ids stay selectable so saving does not drop them.
            for dep in item.dependencies:
                options.setdefault(dep, "Unknown")
            deps = st.multiselect(
                "Dependencies",
                list(options),
                default=list(dict.fromkeys(item.dependencies)),
                format_func=lambda i: options.get(i, i),
            )
            if st.form_submit_button("Save"):
                fields = {
                    "title": title,
                    "description": description,
                    "status": status,
                    "dependencies": deps,
                }
                if _run(tracker.update, item.id, fields):
                    st.rerun()

        m1, m2 = st.columns(2)
        with m1:
            to_stage = st.selectbox(
                "Move to",
                list(STAGES),
                index=list(STAGES).index(stage),
                format_func=lambda s: s.value,
                key=f"move_stage__{key}",
            )
        with m2:
            to_index = st.number_input(
                "Position", min_value=1, value=index + 1, step=1, key=f"move_pos__{key}"
            )
        b1, b2 = st.columns(2)
        with b1:
            if st.button("Move", key=f"move__{key}", use_container_width=True):
                if _run(tracker.move, item.id, stage, to_stage, int(to_index) - 1):
                    st.rerun()
        with b2:
            if st.button("Delete", key=f"delete__{key}", use_container_width=True):
                if _run(tracker.delete, item.id):
                    st.rerun()


def render_board(tracker: BoardTracker) -> None:
    _inject_board_css()
    board = tracker.board
    cols = st.columns(len(STAGES))
    for col, stage in zip(cols, STAGES):
        ids = board.columns[stage]
        with col:
            st.markdown(
                f'<span style="{chip_style_from_color(stage_color(stage))}">'
                f"{stage.value}</span>",
                unsafe_allow_html=True,
            )
            st.caption(f"{len(ids)} initiative(s)")
            _render_create_form(tracker, stage)
            for index, iid in enumerate(ids):
                item = board.initiatives.get(iid)
                if item is None:
                    continue
                _render_card(tracker, stage, index, item)
