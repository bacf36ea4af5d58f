from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Iterable, Union

import pandas as pd

from roadmap_calendar import TimelineConfig, view_index_to_date

logger = logging.getLogger(__name__)

UNASSIGNED_ID = "TBC"
UNASSIGNED_COLOR = "#64748b"
ALL_STAFF = "ALL"

PROFESSIONAL_PALETTE = [
    "#f94144",
    "#f3722c",
    "#f8961e",
    "#f9844a",
    "#f9c74f",
    "#90be6d",
    "#43aa8b",
    "#4d908e",
    "#577590",
    "#277da1",
]

REQUIRED_COLUMNS = {
    "Project",
    "Type",
    "Name",
    "Start month",
    "Start year",
}


# -------------------------
# Records
# -------------------------
@dataclass
class StaffMember:
    staff_id: str
    name: str
    role: str = "Member"
    color: str | None = None
    display_initials: str | None = None
    is_org: bool = False


@dataclass
class Task:
    name: str
    start_month: float
    start_year: int
    end_month: float
    end_year: int
    lead: str = UNASSIGNED_ID
    support: list[str] = field(default_factory=list)


@dataclass
class Milestone:
    name: str
    month: float
    year: int
    icon: str = ""


@dataclass
class Project:
    name: str
    tasks: list[Task] = field(default_factory=list)
    milestones: list[Milestone] = field(default_factory=list)
    goals: list[str] = field(default_factory=list)


@dataclass
class Workspace:
    config: TimelineConfig = field(default_factory=TimelineConfig)
    staff: dict[str, StaffMember] = field(default_factory=dict)
    projects: list[Project] = field(default_factory=list)


# -------------------------
# Owners
# -------------------------
def first_name(name: str) -> str:
    parts = name.split()
    return parts[0] if parts else "?"


class _OwnerNames:
    name: str

    @property
    def first_name(self) -> str:
        return first_name(self.name)


@dataclass(frozen=True)
class Unassigned(_OwnerNames):
    name: str = "Unassigned"
    initials: str = UNASSIGNED_ID
    color: str = UNASSIGNED_COLOR


@dataclass(frozen=True)
class Person(_OwnerNames):
    staff_id: str
    name: str
    initials: str
    color: str


@dataclass(frozen=True)
class Organisation(_OwnerNames):
    staff_id: str
    name: str
    initials: str
    color: str


Owner = Union[Unassigned, Person, Organisation]

UNASSIGNED = Unassigned()


def resolve_owner(staff_id: str | None, staff: dict[str, StaffMember]) -> Owner:
    if not staff_id or staff_id == UNASSIGNED_ID:
        return UNASSIGNED
    member = staff.get(staff_id)
    if member is None:
        logger.debug("Unknown staff id %r, using unassigned placeholder", staff_id)
        return UNASSIGNED
    initials = member.display_initials or build_initials(member.name)
    color = member.color or UNASSIGNED_COLOR
    if member.is_org:
        return Organisation(staff_id=staff_id, name=member.name, initials=initials, color=color)
    return Person(staff_id=staff_id, name=member.name, initials=initials, color=color)


# -------------------------
# Staff registry
# -------------------------
def surname_key(member: StaffMember) -> tuple[str, str]:
    parts = member.name.split()
    surname = parts[-1] if parts else ""
    return surname.casefold(), member.name.casefold()


def build_initials(name: str) -> str:
    parts = name.split()
    if not parts:
        return "?"
    if len(parts) > 1:
        return (parts[0][0] + parts[-1][0]).upper()
    return parts[0][:2].upper()


def sorted_staff(staff: dict[str, StaffMember]) -> list[StaffMember]:
    members = [m for key, m in staff.items() if key != UNASSIGNED_ID]
    return sorted(members, key=surname_key)


def prepare_staff(staff: dict[str, StaffMember]) -> dict[str, StaffMember]:
    """Return a copy of the registry with palette colours and initials filled in.

    Colours are handed out in surname order; a colour or initials already set
    on a member are kept.
    """
    prepared: dict[str, StaffMember] = {}
    for index, member in enumerate(sorted_staff(staff)):
        prepared[member.staff_id] = replace(
            member,
            color=member.color or PROFESSIONAL_PALETTE[index % len(PROFESSIONAL_PALETTE)],
            display_initials=member.display_initials or build_initials(member.name),
        )
    return prepared


def project_visible(project: Project, staff_filter: str | None) -> bool:
    if not staff_filter or staff_filter == ALL_STAFF:
        return True
    return any(task.lead == staff_filter or staff_filter in task.support for task in project.tasks)


# -------------------------
# Parsing
# -------------------------
def _number(value: object, default: float) -> float:
    if value is None:
        return default
    number = pd.to_numeric(value, errors="coerce")
    if pd.isna(number) or not math.isfinite(number):
        return default
    return float(number)


def _whole(value: float) -> int | float:
    return int(value) if float(value).is_integer() else value


def normalize_bool(value: object) -> bool:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return False
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "ja", "1"}
    return bool(value)


def split_support(value: object) -> list[str]:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return []
    if isinstance(value, (list, tuple)):
        ids: list[str] = []
        for entry in value:
            staff_id = entry.get("staff") if isinstance(entry, dict) else entry
            if staff_id:
                ids.append(str(staff_id))
        return ids
    return [item.strip() for item in str(value).split("|") if item.strip()]


def _parse_staff(data: dict) -> dict[str, StaffMember]:
    staff: dict[str, StaffMember] = {}
    for staff_id, entry in data.items():
        if staff_id == UNASSIGNED_ID:
            continue
        if not isinstance(entry, dict) or not entry.get("name"):
            logger.warning("Skipping staff entry %r without a name", staff_id)
            continue
        staff[staff_id] = StaffMember(
            staff_id=staff_id,
            name=str(entry["name"]),
            role=str(entry.get("role", "Member")),
            color=entry.get("color"),
            display_initials=entry.get("displayInitials"),
            is_org=normalize_bool(entry.get("isOrg")),
        )
    return staff


def _parse_task(entry: dict, config: TimelineConfig) -> Task:
    if "startMonth" not in entry and "start" in entry:
        # older files store absolute view indices
        start_month, start_year = view_index_to_date(_number(entry.get("start"), 1.0), config)
        end_month, end_year = view_index_to_date(_number(entry.get("end"), 1.0), config)
    else:
        start_month = _number(entry.get("startMonth"), config.start_month)
        start_year = int(_number(entry.get("startYear"), config.start_year))
        end_month = _number(entry.get("endMonth"), start_month)
        end_year = int(_number(entry.get("endYear"), start_year))
    return Task(
        name=str(entry.get("name", "New Task")),
        start_month=_whole(start_month),
        start_year=start_year,
        end_month=_whole(end_month),
        end_year=end_year,
        lead=str(entry.get("lead") or UNASSIGNED_ID),
        support=split_support(entry.get("support")),
    )


def _parse_milestone(entry: dict, config: TimelineConfig) -> Milestone:
    month = _number(entry.get("month"), config.start_month)
    if entry.get("year") is None:
        month, year = view_index_to_date(month, config)
    else:
        year = int(_number(entry.get("year"), config.start_year))
    return Milestone(
        name=str(entry.get("name", "Milestone")),
        month=_whole(month),
        year=year,
        icon=str(entry.get("icon") or ""),
    )


def parse_workspace(data: dict) -> Workspace:
    if not isinstance(data, dict):
        raise ValueError("Workspace document must be a JSON object")
    projects_data = data.get("projects") or []
    if not isinstance(projects_data, list):
        raise ValueError("Workspace 'projects' must be a list")
    staff_data = data.get("staff") or {}
    if not isinstance(staff_data, dict):
        raise ValueError("Workspace 'staff' must be an object")
    config_data = data.get("config") or {}
    if not isinstance(config_data, dict):
        raise ValueError("Workspace 'config' must be an object")

    config = TimelineConfig.from_dict(config_data)
    staff = _parse_staff(staff_data)

    projects: list[Project] = []
    for index, entry in enumerate(projects_data):
        if not isinstance(entry, dict):
            logger.warning("Skipping project #%d: not an object", index)
            continue
        projects.append(
            Project(
                name=str(entry.get("name", "Untitled Project")),
                tasks=[_parse_task(t, config) for t in entry.get("tasks") or [] if isinstance(t, dict)],
                milestones=[_parse_milestone(m, config) for m in entry.get("milestones") or [] if isinstance(m, dict)],
                goals=[str(g) for g in entry.get("goals") or []],
            )
        )
    return Workspace(config=config, staff=prepare_staff(staff), projects=projects)


def workspace_to_dict(workspace: Workspace) -> dict:
    staff: dict[str, dict] = {}
    for staff_id, member in workspace.staff.items():
        record: dict = {"name": member.name, "role": member.role}
        if member.color:
            record["color"] = member.color
        if member.display_initials:
            record["displayInitials"] = member.display_initials
        if member.is_org:
            record["isOrg"] = True
        staff[staff_id] = record

    projects = [
        {
            "name": project.name,
            "tasks": [
                {
                    "name": task.name,
                    "startMonth": task.start_month,
                    "startYear": task.start_year,
                    "endMonth": task.end_month,
                    "endYear": task.end_year,
                    "lead": task.lead,
                    "support": [{"staff": staff_id} for staff_id in task.support],
                }
                for task in project.tasks
            ],
            "milestones": [
                {"name": m.name, "month": m.month, "year": m.year, "icon": m.icon} for m in project.milestones
            ],
            "goals": list(project.goals),
        }
        for project in workspace.projects
    ]
    return {"config": workspace.config.to_dict(), "staff": staff, "projects": projects}


def read_workspace(path: str | Path) -> Workspace:
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"{path} is not valid JSON: {exc}") from exc
    return parse_workspace(data)


def write_workspace(workspace: Workspace, path: str | Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(workspace_to_dict(workspace), indent=2, ensure_ascii=False), encoding="utf-8")


# -------------------------
# Tabular import
# -------------------------
def _read_table(path: Path) -> pd.DataFrame:
    if path.suffix.lower() == ".csv":
        return pd.read_csv(path)
    return pd.read_excel(path)


def _cell(row: pd.Series, column: str) -> object:
    if column not in row.index:
        return None
    value = row[column]
    return None if pd.isna(value) else value


def _staff_ids(names: Iterable[str], staff: dict[str, StaffMember]) -> list[str]:
    by_name = {m.name.casefold(): key for key, m in staff.items()}
    ids: list[str] = []
    for name in names:
        key = by_name.get(name.casefold())
        if key is None:
            key = f"id_{len(staff) + 1}"
            staff[key] = StaffMember(staff_id=key, name=name)
            by_name[name.casefold()] = key
        ids.append(key)
    return ids


def read_workspace_from_table(path: str | Path, config: TimelineConfig | None = None) -> Workspace:
    """Build a workspace from a spreadsheet with one row per task or milestone.

    Lead and Support cells hold staff names (Support separated by ``|``); new
    names are added to the staff registry.
    """
    path = Path(path)
    config = config or TimelineConfig()
    df = _read_table(path)
    missing = REQUIRED_COLUMNS.difference(df.columns)
    if missing:
        raise ValueError(f"Missing columns in {path.name}: {', '.join(sorted(missing))}")

    staff: dict[str, StaffMember] = {}
    projects: dict[str, Project] = {}
    for idx, row in df.iterrows():
        project_name = str(_cell(row, "Project") or "Untitled Project")
        project = projects.setdefault(project_name, Project(name=project_name))
        kind = str(_cell(row, "Type") or "").strip().lower()
        name = str(_cell(row, "Name") or "")
        start_month = _number(_cell(row, "Start month"), config.start_month)
        start_year = int(_number(_cell(row, "Start year"), config.start_year))

        if kind == "milestone":
            project.milestones.append(
                Milestone(name=name, month=_whole(start_month), year=start_year, icon=str(_cell(row, "Icon") or ""))
            )
            continue
        if kind != "task":
            logger.warning("Row %s: unknown type %r, skipped", idx, kind)
            continue

        lead_name = _cell(row, "Lead")
        lead = _staff_ids([str(lead_name)], staff)[0] if lead_name else UNASSIGNED_ID
        end_month = _number(_cell(row, "End month"), start_month)
        project.tasks.append(
            Task(
                name=name,
                start_month=_whole(start_month),
                start_year=start_year,
                end_month=_whole(end_month),
                end_year=int(_number(_cell(row, "End year"), start_year)),
                lead=lead,
                support=_staff_ids(split_support(_cell(row, "Support")), staff),
            )
        )

    return Workspace(config=config, staff=prepare_staff(staff), projects=list(projects.values()))
