"""Labels, colors and card markup shared by the board UI."""

from __future__ import annotations

import html
import re
from typing import Any, Dict, Iterable, List, MutableMapping

from initiative_tracker.schema import Initiative, InitiativeStatus, Stage

_NEUTRAL = "#9E9E9E"

STATUS_LABELS: Dict[InitiativeStatus, str] = {
    InitiativeStatus.NOT_STARTED: "Not Started",
    InitiativeStatus.IN_PROGRESS: "In Progress",
    InitiativeStatus.BLOCKED: "Blocked",
    InitiativeStatus.DONE: "Done",
}

_STATUS_COLORS: Dict[InitiativeStatus, str] = {
    InitiativeStatus.NOT_STARTED: _NEUTRAL,
    InitiativeStatus.IN_PROGRESS: "#1976D2",
    InitiativeStatus.BLOCKED: "#ED6C02",
    InitiativeStatus.DONE: "#2E7D32",
}

_STAGE_COLORS: Dict[Stage, str] = {
    Stage.DEV: "#1976D2",
    Stage.QA: "#ED6C02",
    Stage.DEMO: "#9C27B0",
    Stage.UAT: "#2E7D32",
    Stage.CHANGE_TICKET: "#D32F2F",
    Stage.PROD: "#1565C0",
}


def status_label(status: InitiativeStatus) -> str:
    return STATUS_LABELS.get(status, str(status.value))


def status_color(status: InitiativeStatus) -> str:
    return _STATUS_COLORS.get(status, _NEUTRAL)


def stage_color(stage: Stage) -> str:
    return _STAGE_COLORS.get(stage, _NEUTRAL)


def stage_slug(stage: Stage) -> str:
    base = re.sub(r"[^a-z0-9]+", "_", stage.value.strip().lower()).strip("_")
    return base or "stage"


def form_generation(state: MutableMapping[str, Any], name: str) -> int:
    """Suffix for the widget keys of form `name`; bumping it renders a blank form."""
    return int(state.get(f"__form_gen__{name}", 0))


def reset_form(state: MutableMapping[str, Any], name: str) -> None:
    state[f"__form_gen__{name}"] = form_generation(state, name) + 1


def _hex_to_rgba(hex_color: str, alpha: float) -> str:
    h = hex_color.lstrip("#")
    if len(h) != 6:
        return f"rgba(127,146,178,{alpha:.3f})"
    r = int(h[0:2], 16)
    g = int(h[2:4], 16)
    b = int(h[4:6], 16)
    return f"rgba({r},{g},{b},{alpha:.3f})"


def chip_style_from_color(hex_color: str) -> str:
    border = _hex_to_rgba(hex_color, 0.62)
    bg = _hex_to_rgba(hex_color, 0.16)
    return (
        f"color:{hex_color}; border:1px solid {border}; background:{bg}; "
        "border-radius:999px; padding:2px 10px; font-weight:700; font-size:0.80rem;"
    )


def card_html(item: Initiative, dependency_titles: Iterable[str]) -> str:
    """Card body: title, optional description, status chip and dependency chips."""
    parts: List[str] = [f'<div class="it-card-title">{html.escape(item.title)}</div>']
    if item.description:
        parts.append(f'<div class="it-card-desc">{html.escape(item.description)}</div>')
    parts.append(
        f'<span style="{chip_style_from_color(status_color(item.status))}">'
        f"{html.escape(status_label(item.status))}</span>"
    )
    deps = [html.escape(t) for t in dependency_titles]
    if deps:
        chips = "".join(
            f'<span style="{chip_style_from_color(_NEUTRAL)}">{t}</span>' for t in deps
        )
        parts.append(f'<div class="it-card-deps">Depends on: {chips}</div>')
    return f'<article class="it-card">{"".join(parts)}</article>'
