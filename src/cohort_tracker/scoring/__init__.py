"""Pure scoreboard and timeline computations."""

from .engine import (
    CellDisplay,
    CheckboxCell,
    ColumnGroup,
    ProgressCell,
    ScoreColumn,
    category_score,
    category_scores,
    cohort_score,
    column_groups,
    compare_requirements,
    format_percent_complete,
    percent_complete,
    score_columns,
    score_for,
    scoreboard_requirements,
    sort_requirements,
    target_for,
    visible_requirements,
)
from .scoreboard import Scoreboard, ScoreboardRow, build_row, build_scoreboard
from .timeline import (
    HistoryItem,
    HistoryItemError,
    TimelineUpdate,
    TimelineUpdateRequest,
    format_duration,
    history_items,
    reconcile_timeline,
    running_totals,
    timeline_slice,
)

__all__ = [
    "CellDisplay",
    "CheckboxCell",
    "ColumnGroup",
    "HistoryItem",
    "HistoryItemError",
    "ProgressCell",
    "ScoreColumn",
    "Scoreboard",
    "ScoreboardRow",
    "TimelineUpdate",
    "TimelineUpdateRequest",
    "build_row",
    "build_scoreboard",
    "category_score",
    "category_scores",
    "cohort_score",
    "column_groups",
    "compare_requirements",
    "format_duration",
    "format_percent_complete",
    "history_items",
    "percent_complete",
    "reconcile_timeline",
    "running_totals",
    "score_columns",
    "score_for",
    "scoreboard_requirements",
    "sort_requirements",
    "target_for",
    "timeline_slice",
    "visible_requirements",
]
