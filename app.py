from __future__ import annotations

import streamlit as st

from initiative_tracker.config import Settings, configure_logging, ensure_env, load_settings
from initiative_tracker.ui.board import get_tracker, render_board, render_toolbar


def main() -> None:
    ensure_env()
    settings: Settings = load_settings()
    configure_logging(settings)

    st.set_page_config(page_title=settings.APP_TITLE, layout="wide")
    st.title(settings.APP_TITLE)
    st.caption("Track your initiatives through the development lifecycle")

    tracker = get_tracker(settings)
    render_toolbar(tracker, settings)
    render_board(tracker)


if __name__ == "__main__":
    main()
