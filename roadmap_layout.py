from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

import pandas as pd

from roadmap_calendar import TimelineConfig, date_to_view_index, total_columns as count_columns
from roadmap_core import (
    Milestone,
    Owner,
    Project,
    StaffMember,
    Task,
    Workspace,
    project_visible,
    resolve_owner,
)

logger = logging.getLogger(__name__)

TimelineItem = Union[Task, Milestone]


@dataclass(frozen=True)
class LayoutSettings:
    base_offset: int = 20
    lane_height: int = 65
    min_row_height: int = 120
    row_padding: int = 40
    lead_badge_px: float = 28
    support_badge_px: float = 24
    badge_margin_px: float = 20
    badge_slack_px: float = 10
    char_px: float = 7.5
    min_grid_width: int = 1600
    column_px: int = 130


DEFAULT_SETTINGS = LayoutSettings()


@dataclass
class ItemGeometry:
    item: TimelineItem
    kind: str
    lane: int
    view_start: float
    view_end: float | None
    left_percent: float
    width_percent: float | None
    top_px: int
    label_outside: bool
    badges_outside: bool
    owner: Owner | None = None
    collaborators: tuple[Owner, ...] = ()
    team_summary: str = ""


@dataclass
class ProjectRowLayout:
    project: Project
    items: list[ItemGeometry]
    height_px: int


@dataclass
class _Placed:
    item: TimelineItem
    kind: str
    order: int
    view_start: float
    view_end: float | None


def grid_width_for(total_columns: int, settings: LayoutSettings = DEFAULT_SETTINGS) -> int:
    return max(settings.min_grid_width, total_columns * settings.column_px)


def row_height(item_count: int, settings: LayoutSettings = DEFAULT_SETTINGS) -> int:
    return max(settings.min_row_height, item_count * settings.lane_height + settings.row_padding)


def estimate_badge_width(support_count: int, settings: LayoutSettings = DEFAULT_SETTINGS) -> float:
    return settings.lead_badge_px + support_count * settings.support_badge_px + settings.badge_margin_px


def estimate_text_width(*texts: str, settings: LayoutSettings = DEFAULT_SETTINGS) -> float:
    longest = max((len(text) for text in texts), default=0)
    return longest * settings.char_px


def place_labels(
    bar_px: float, badge_px: float, text_px: float, settings: LayoutSettings = DEFAULT_SETTINGS
) -> tuple[bool, bool]:
    """Return ``(label_outside, badges_outside)`` for a bar of ``bar_px`` pixels.

    Both flags are plain threshold tests, so a narrower bar never moves
    content back inside.
    """
    badges_outside = bar_px < badge_px - settings.badge_slack_px
    label_outside = bar_px < badge_px + text_px
    return label_outside, badges_outside


def team_summary(lead: Owner, collaborators: tuple[Owner, ...]) -> str:
    if not collaborators:
        return lead.first_name
    return f"{lead.first_name} + {', '.join(c.first_name for c in collaborators)}"


def _visible(placed: _Placed, total_columns: int) -> bool:
    if placed.view_start > total_columns + 1:
        return False
    if placed.view_end is not None:
        return placed.view_end >= 1
    return placed.view_start >= 1


def _sort_key(placed: _Placed) -> tuple:
    # milestones first on a shared start
    return (placed.view_start, placed.kind != "milestone", placed.order)


def layout_project_row(
    tasks: list[Task],
    milestones: list[Milestone],
    config: TimelineConfig,
    total_columns: int,
    pixel_width: float,
    staff: dict[str, StaffMember] | None = None,
    settings: LayoutSettings = DEFAULT_SETTINGS,
) -> list[ItemGeometry]:
    """Lay out one project's tasks and milestones on the timeline.

    Items are ordered by start (milestones ahead of tasks on the same start)
    and each one gets its own lane in that order. Items entirely outside the
    window are dropped. Positions are percentages of the timeline width;
    ``pixel_width`` is only used to decide whether labels and badges fit
    inside a task bar.
    """
    if total_columns <= 0:
        return []
    staff = staff or {}

    placed: list[_Placed] = []
    order = 0
    for task in tasks:
        placed.append(
            _Placed(
                item=task,
                kind="task",
                order=order,
                view_start=date_to_view_index(task.start_month, task.start_year, config),
                view_end=date_to_view_index(task.end_month, task.end_year, config),
            )
        )
        order += 1
    for milestone in milestones:
        placed.append(
            _Placed(
                item=milestone,
                kind="milestone",
                order=order,
                view_start=date_to_view_index(milestone.month, milestone.year, config),
                view_end=None,
            )
        )
        order += 1

    visible = [p for p in placed if _visible(p, total_columns)]
    if len(visible) != len(placed):
        logger.debug("Dropped %d item(s) outside the timeline window", len(placed) - len(visible))
    visible.sort(key=_sort_key)

    geometry: list[ItemGeometry] = []
    for lane, p in enumerate(visible):
        left = (p.view_start - 1) / total_columns * 100
        top = settings.base_offset + lane * settings.lane_height

        if p.kind == "milestone":
            geometry.append(
                ItemGeometry(
                    item=p.item,
                    kind=p.kind,
                    lane=lane,
                    view_start=p.view_start,
                    view_end=None,
                    left_percent=left,
                    width_percent=None,
                    top_px=top,
                    label_outside=True,
                    badges_outside=False,
                )
            )
            continue

        task = p.item
        lead = resolve_owner(task.lead, staff)
        collaborators = tuple(resolve_owner(staff_id, staff) for staff_id in task.support)
        summary = team_summary(lead, collaborators)

        width = (p.view_end - p.view_start) / total_columns * 100
        bar_px = width / 100 * pixel_width
        badge_px = estimate_badge_width(len(collaborators), settings)
        text_px = estimate_text_width(task.name, summary, settings=settings)
        label_outside, badges_outside = place_labels(bar_px, badge_px, text_px, settings)

        geometry.append(
            ItemGeometry(
                item=task,
                kind=p.kind,
                lane=lane,
                view_start=p.view_start,
                view_end=p.view_end,
                left_percent=left,
                width_percent=width,
                top_px=top,
                label_outside=label_outside,
                badges_outside=badges_outside,
                owner=lead,
                collaborators=collaborators,
                team_summary=summary,
            )
        )
    return geometry


def layout_workspace(
    workspace: Workspace,
    pixel_width: float | None = None,
    staff_filter: str | None = None,
    settings: LayoutSettings = DEFAULT_SETTINGS,
) -> list[ProjectRowLayout]:
    columns = count_columns(workspace.config)
    width = pixel_width if pixel_width is not None else grid_width_for(columns, settings)

    rows: list[ProjectRowLayout] = []
    for project in workspace.projects:
        if not project_visible(project, staff_filter):
            continue
        items = layout_project_row(
            project.tasks,
            project.milestones,
            workspace.config,
            columns,
            width,
            staff=workspace.staff,
            settings=settings,
        )
        rows.append(ProjectRowLayout(project=project, items=items, height_px=row_height(len(items), settings)))
    return rows


def layout_to_frame(rows: list[ProjectRowLayout]) -> pd.DataFrame:
    records: list[dict] = []
    for row in rows:
        for g in row.items:
            records.append(
                {
                    "project": row.project.name,
                    "kind": g.kind,
                    "name": g.item.name,
                    "lane": g.lane,
                    "view_start": g.view_start,
                    "view_end": g.view_end,
                    "left_percent": round(g.left_percent, 4),
                    "width_percent": None if g.width_percent is None else round(g.width_percent, 4),
                    "top_px": g.top_px,
                    "label_outside": g.label_outside,
                    "badges_outside": g.badges_outside,
                    "lead": g.owner.name if g.owner is not None else "",
                    "team": g.team_summary,
                }
            )
    columns = [
        "project",
        "kind",
        "name",
        "lane",
        "view_start",
        "view_end",
        "left_percent",
        "width_percent",
        "top_px",
        "label_outside",
        "badges_outside",
        "lead",
        "team",
    ]
    return pd.DataFrame.from_records(records, columns=columns)
