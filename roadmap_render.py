#%%
from __future__ import annotations
from pathlib import Path
import html
import logging

from roadmap_calendar import TimelineColumn, build_timeline_columns
from roadmap_core import UNASSIGNED, Workspace, read_workspace
from roadmap_layout import (
    DEFAULT_SETTINGS,
    ItemGeometry,
    LayoutSettings,
    ProjectRowLayout,
    grid_width_for,
    layout_workspace,
)

logger = logging.getLogger(__name__)

MIN_BAR_PERCENT = 0.4

STYLE = [
    "body { font-family: 'Segoe UI', sans-serif; margin: 20px; color: #1e293b; }",
    ":root { --project-col-width: 220px; }",
    ".timeline-scroller { overflow-x: auto; padding-bottom: 10px; }",
    ".timeline-card { border: 1px solid #e2e8f0; border-radius: 12px; background: #fff; }",
    ".timeline-header, .timeline-row { display: grid; }",
    ".timeline-header { font-size: 12px; font-weight: 600; border-bottom: 2px solid #e2e8f0; }",
    ".timeline-header > div { padding: 10px 6px; text-align: center; }",
    ".timeline-row { border-bottom: 1px solid #f1f5f9; }",
    ".project-sidebar { padding: 14px; font-weight: 600; border-right: 1px solid #e2e8f0; }",
    ".project-goals { font-weight: 400; font-size: 11px; color: #64748b; margin-top: 6px; }",
    ".data-area {",
    "  position: relative;",
    "  background-image: linear-gradient(to right, #f1f5f9 1px, transparent 1px);",
    "}",
    ".task-item, .milestone-lane-item { position: absolute; height: 48px; }",
    ".task-bar { height: 100%; border-radius: 8px; display: flex; align-items: center; gap: 6px; padding: 0 6px; }",
    ".task-bar.tbc-warning { outline: 2px dashed #f59e0b; }",
    ".badge-group { display: flex; gap: 2px; }",
    ".badge-group.badges-outside { position: absolute; right: 100%; margin-right: 6px; }",
    ".badge { width: 22px; height: 22px; border-radius: 50%; font-size: 9px; font-weight: 700;",
    "  display: flex; align-items: center; justify-content: center; color: #fff; background: rgba(0,0,0,0.25); }",
    ".task-label { font-size: 12px; white-space: nowrap; }",
    ".task-label.label-outside { position: absolute; left: 100%; margin-left: 8px; color: #1e293b; }",
    ".task-label.label-inside { color: #fff; }",
    ".task-team-text { font-size: 10px; opacity: 0.8; }",
    ".milestone-diamond { width: 14px; height: 14px; transform: rotate(45deg); background: #1e293b; margin-top: 16px; }",
    ".date-line { position: absolute; left: 6px; top: -20px; bottom: -20px; border-left: 1px dashed #94a3b8; }",
    ".milestone-lane-label { position: absolute; left: 22px; top: 12px; font-size: 12px; white-space: nowrap; }",
]


# -------------------------
# Fragments
# -------------------------
def _header_html(columns: list[TimelineColumn]) -> str:
    cells = "".join(f"<div>{html.escape(c.label)}</div>" for c in columns)
    return (
        f"<div class='timeline-header' style='grid-template-columns: var(--project-col-width) "
        f"repeat({len(columns)}, 1fr);'><div>Project Item</div>{cells}</div>"
    )


def _task_html(g: ItemGeometry) -> str:
    task = g.item
    owner = g.owner or UNASSIGNED
    width = max(g.width_percent or 0.0, MIN_BAR_PERCENT)

    badges = [f"<div class='badge lead'>{html.escape(owner.initials)}</div>"]
    for collaborator in g.collaborators:
        badges.append(
            f"<div class='badge support' style='background:{collaborator.color}'>"
            f"{html.escape(collaborator.initials)}</div>"
        )
    badge_classes = "badge-group badges-outside" if g.badges_outside else "badge-group"
    label_class = "label-outside" if g.label_outside else "label-inside"
    bar_classes = "task-bar tbc-warning" if owner is UNASSIGNED else "task-bar"

    return (
        f"<div class='task-item' style='left: {g.left_percent:.4f}%; width: {width:.4f}%; top: {g.top_px}px;' "
        f"data-lane='{g.lane}'>"
        f"<div class='{bar_classes}' style='background:{owner.color}'>"
        f"<div class='{badge_classes}'>{''.join(badges)}</div>"
        f"<div class='task-label {label_class}'>"
        f"<div class='task-name-text'>{html.escape(task.name)}</div>"
        f"<div class='task-team-text'>{html.escape(g.team_summary)}</div>"
        "</div></div></div>"
    )


def _milestone_html(g: ItemGeometry) -> str:
    milestone = g.item
    icon = f"{html.escape(milestone.icon)} " if milestone.icon else ""
    return (
        f"<div class='milestone-lane-item' style='left: {g.left_percent:.4f}%; top: {g.top_px}px;' "
        f"data-lane='{g.lane}'>"
        "<div class='date-line'></div><div class='milestone-diamond'></div>"
        f"<div class='milestone-lane-label'>{icon}{html.escape(milestone.name)}</div>"
        "</div>"
    )


def _row_html(row: ProjectRowLayout, total_columns: int) -> str:
    parts = [
        f"<div class='timeline-row' style='grid-template-columns: var(--project-col-width) 1fr; "
        f"min-height: {row.height_px}px;'>",
        f"<div class='project-sidebar'><div>{html.escape(row.project.name)}</div>",
    ]
    if row.project.goals:
        goals = "".join(f"<li>{html.escape(goal)}</li>" for goal in row.project.goals)
        parts.append(f"<ul class='project-goals'>{goals}</ul>")
    parts.append("</div>")

    size = f"calc(100% / {total_columns}) 100%" if total_columns else "100% 100%"
    parts.append(f"<div class='data-area' style='background-size: {size};'>")
    for g in row.items:
        parts.append(_task_html(g) if g.kind == "task" else _milestone_html(g))
    parts.append("</div></div>")
    return "".join(parts)


# -------------------------
# Main
# -------------------------
def build_roadmap_html(
    workspace: Workspace,
    staff_filter: str | None = None,
    pixel_width: int | None = None,
    settings: LayoutSettings = DEFAULT_SETTINGS,
) -> str:
    columns = build_timeline_columns(workspace.config)
    grid_width = pixel_width or grid_width_for(len(columns), settings)
    rows = layout_workspace(workspace, pixel_width=grid_width, staff_filter=staff_filter, settings=settings)

    html_parts = [
        "<!DOCTYPE html>",
        "<html lang='en'>",
        "<head>",
        "<meta charset='utf-8' />",
        "<title>Roadmap</title>",
        "<style>",
        *STYLE,
        "</style>",
        "</head>",
        "<body>",
        "<div class='timeline-scroller'>",
        f"<div class='timeline-card' style='width: {grid_width}px;'>",
        _header_html(columns),
    ]
    for row in rows:
        html_parts.append(_row_html(row, len(columns)))
    html_parts.extend(["</div>", "</div>", "</body>", "</html>"])
    return "\n".join(html_parts)


def generate_roadmap_html(
    workspace: Workspace | str | Path,
    output_path: str | Path,
    staff_filter: str | None = None,
    pixel_width: int | None = None,
) -> None:
    if not isinstance(workspace, Workspace):
        workspace = read_workspace(workspace)
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(build_roadmap_html(workspace, staff_filter, pixel_width), encoding="utf-8")
    logger.debug("Rendered %d project(s)", len(workspace.projects))
    print(f"Roadmap saved to {output_path.resolve()}")
