"""Marker vocabulary matching the XMind marker system.

Markers are display-only tags. The store accepts any marker string;
this table exists so front ends can render the known ones and so the
forest audit can flag unknown ids.
"""

from __future__ import annotations

from dataclasses import dataclass, field

SUMMARY_MARKER = "summary"


@dataclass(frozen=True)
class MarkerOption:
    id: str
    label: str
    icon: str | None = None
    color: str | None = None


@dataclass(frozen=True)
class MarkerCategory:
    id: str
    label: str
    options: tuple[MarkerOption, ...] = field(default_factory=tuple)


_PALETTE = {
    "red": "#ef4444",
    "orange": "#f97316",
    "yellow": "#eab308",
    "green": "#22c55e",
    "blue": "#3b82f6",
    "purple": "#8b5cf6",
    "gray": "#64748b",
}


def _colored(prefix: str, colors: list[str]) -> tuple[MarkerOption, ...]:
    return tuple(
        MarkerOption(id=f"{prefix}-{c}", label=c.capitalize(), color=_PALETTE[c]) for c in colors
    )


MARKER_CATEGORIES: tuple[MarkerCategory, ...] = (
    MarkerCategory(
        "priority",
        "Task Priority",
        tuple(
            MarkerOption(id=f"priority-{n}", label=str(n), color=color)
            for n, color in enumerate(
                [
                    "#ef4444",
                    "#f97316",
                    "#eab308",
                    "#22c55e",
                    "#3b82f6",
                    "#6366f1",
                    "#8b5cf6",
                    "#a855f7",
                    "#64748b",
                ],
                start=1,
            )
        ),
    ),
    MarkerCategory(
        "task",
        "Task Progress",
        (
            MarkerOption("task-start", "Not Started", icon="circle"),
            MarkerOption("task-oct", "1/8", icon="clock-1"),
            MarkerOption("task-quarter", "1/4", icon="clock-2"),
            MarkerOption("task-3oct", "3/8", icon="clock-3"),
            MarkerOption("task-half", "1/2", icon="clock-4"),
            MarkerOption("task-5oct", "5/8", icon="clock-5"),
            MarkerOption("task-3quarter", "3/4", icon="clock-6"),
            MarkerOption("task-7oct", "7/8", icon="clock-7"),
            MarkerOption("task-done", "Done", icon="check-circle"),
        ),
    ),
    MarkerCategory(
        "flag",
        "Flags",
        _colored("flag", ["red", "orange", "yellow", "green", "blue", "purple", "gray"]),
    ),
    MarkerCategory(
        "star", "Stars", _colored("star", ["red", "orange", "yellow", "green", "blue", "purple"])
    ),
    MarkerCategory(
        "people",
        "People",
        _colored("people", ["red", "orange", "yellow", "green", "blue", "purple"]),
    ),
    MarkerCategory(
        "arrow",
        "Arrows",
        (
            MarkerOption("arrow-up", "Up", icon="arrow-up"),
            MarkerOption("arrow-down", "Down", icon="arrow-down"),
            MarkerOption("arrow-left", "Left", icon="arrow-left"),
            MarkerOption("arrow-right", "Right", icon="arrow-right"),
            MarkerOption("arrow-up-right", "Up Right", icon="arrow-up-right"),
            MarkerOption("arrow-down-right", "Down Right", icon="arrow-down-right"),
            MarkerOption("arrow-refresh", "Refresh", icon="refresh-cw"),
        ),
    ),
    MarkerCategory(
        "symbol",
        "Symbols",
        (
            MarkerOption("symbol-plus", "Plus", icon="plus", color="#22c55e"),
            MarkerOption("symbol-minus", "Minus", icon="minus", color="#ef4444"),
            MarkerOption("symbol-question", "Question", icon="help-circle", color="#eab308"),
            MarkerOption("symbol-info", "Info", icon="info", color="#3b82f6"),
            MarkerOption("symbol-x", "X", icon="x", color="#ef4444"),
            MarkerOption("symbol-check", "Check", icon="check", color="#22c55e"),
            MarkerOption("symbol-pause", "Pause", icon="pause", color="#f97316"),
            MarkerOption("symbol-exclam", "Important", icon="alert-triangle", color="#ef4444"),
        ),
    ),
    MarkerCategory(
        "month",
        "Month",
        tuple(
            MarkerOption(id=f"month-{n}", label=label, color=_PALETTE[color])
            for n, (label, color) in enumerate(
                [
                    ("Jan", "blue"),
                    ("Feb", "blue"),
                    ("Mar", "blue"),
                    ("Apr", "green"),
                    ("May", "green"),
                    ("Jun", "green"),
                    ("Jul", "red"),
                    ("Aug", "red"),
                    ("Sep", "red"),
                    ("Oct", "orange"),
                    ("Nov", "orange"),
                    ("Dec", "orange"),
                ],
                start=1,
            )
        ),
    ),
    MarkerCategory(
        "week",
        "Day of Week",
        (
            MarkerOption("week-sun", "Sun", color=_PALETTE["red"]),
            MarkerOption("week-mon", "Mon", color=_PALETTE["blue"]),
            MarkerOption("week-tue", "Tue", color=_PALETTE["purple"]),
            MarkerOption("week-wed", "Wed", color=_PALETTE["green"]),
            MarkerOption("week-thu", "Thu", color=_PALETTE["purple"]),
            MarkerOption("week-fri", "Fri", color=_PALETTE["green"]),
            MarkerOption("week-sat", "Sat", color=_PALETTE["orange"]),
        ),
    ),
)


def get_marker_by_id(marker_id: str) -> tuple[MarkerCategory, MarkerOption] | None:
    """Look up a marker option and the category it belongs to."""
    for category in MARKER_CATEGORIES:
        for option in category.options:
            if option.id == marker_id:
                return category, option
    return None


def get_category_by_id(category_id: str) -> MarkerCategory | None:
    """Look up a marker category by id."""
    for category in MARKER_CATEGORIES:
        if category.id == category_id:
            return category
    return None


def is_known_marker(marker_id: str) -> bool:
    """True for vocabulary markers and the synthetic summary marker."""
    return marker_id == SUMMARY_MARKER or get_marker_by_id(marker_id) is not None
