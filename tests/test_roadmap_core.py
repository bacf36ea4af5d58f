"""Tests for the workspace model: staff registry, owners, loading and import."""

import json

import pytest

from roadmap_calendar import TimelineConfig
from roadmap_core import (
    PROFESSIONAL_PALETTE,
    UNASSIGNED,
    UNASSIGNED_COLOR,
    Milestone,
    Organisation,
    Person,
    Project,
    StaffMember,
    Task,
    build_initials,
    parse_workspace,
    prepare_staff,
    project_visible,
    read_workspace,
    read_workspace_from_table,
    resolve_owner,
    split_support,
    write_workspace,
)


@pytest.fixture
def document():
    return {
        "config": {"startYear": 2025, "startMonth": 1, "endYear": 2025, "endMonth": 12},
        "staff": {
            "TBC": {"name": "Unassigned", "color": "#64748b"},
            "id_1": {"name": "Ada Lovelace", "role": "Engineer"},
            "id_2": {"name": "Grace Hopper", "role": "Lead", "color": "#000000"},
            "org_1": {"name": "Acme", "role": "Vendor", "isOrg": True},
        },
        "projects": [
            {
                "name": "Platform",
                "tasks": [
                    {
                        "name": "Design",
                        "startMonth": 2,
                        "startYear": 2025,
                        "endMonth": 4.5,
                        "endYear": 2025,
                        "lead": "id_1",
                        "support": [{"staff": "id_2"}, {"staff": "org_1"}],
                    }
                ],
                "milestones": [{"name": "Beta", "month": 5, "year": 2025, "icon": "flag"}],
                "goals": ["Ship v1"],
            }
        ],
    }


# ---------------------------------------------------------------------------
# Staff registry
# ---------------------------------------------------------------------------

class TestInitials:

    def test_first_and_last_name(self):
        assert build_initials("Ada King Lovelace") == "AL"

    def test_single_name_uses_two_letters(self):
        assert build_initials("cher") == "CH"

    def test_blank_name(self):
        assert build_initials("  ") == "?"


class TestPrepareStaff:

    def test_palette_in_surname_order(self):
        staff = {
            "a": StaffMember(staff_id="a", name="Zoe Adams"),
            "b": StaffMember(staff_id="b", name="Adam Zed"),
            "c": StaffMember(staff_id="c", name="Mia Brown"),
        }
        prepared = prepare_staff(staff)
        assert prepared["a"].color == PROFESSIONAL_PALETTE[0]
        assert prepared["c"].color == PROFESSIONAL_PALETTE[1]
        assert prepared["b"].color == PROFESSIONAL_PALETTE[2]

    def test_palette_wraps(self):
        staff = {f"s{i:02d}": StaffMember(staff_id=f"s{i:02d}", name=f"Person {i:02d}") for i in range(12)}
        prepared = prepare_staff(staff)
        assert prepared["s10"].color == PROFESSIONAL_PALETTE[0]

    def test_keeps_explicit_values_and_does_not_mutate(self):
        member = StaffMember(staff_id="x", name="Grace Hopper", color="#123456", display_initials="GMH")
        plain = StaffMember(staff_id="y", name="Ada Lovelace")
        prepared = prepare_staff({"x": member, "y": plain})
        assert prepared["x"].color == "#123456"
        assert prepared["x"].display_initials == "GMH"
        assert prepared["y"].display_initials == "AL"
        assert plain.color is None

    def test_unassigned_key_excluded(self):
        staff = {"TBC": StaffMember(staff_id="TBC", name="Unassigned")}
        assert prepare_staff(staff) == {}


class TestResolveOwner:

    @pytest.fixture
    def staff(self):
        return prepare_staff(
            {
                "p": StaffMember(staff_id="p", name="Ada Lovelace"),
                "o": StaffMember(staff_id="o", name="Acme Ltd", is_org=True),
            }
        )

    def test_person(self, staff):
        owner = resolve_owner("p", staff)
        assert isinstance(owner, Person)
        assert owner.first_name == "Ada"
        assert owner.initials == "AL"

    def test_organisation(self, staff):
        owner = resolve_owner("o", staff)
        assert isinstance(owner, Organisation)
        assert owner.staff_id == "o"

    @pytest.mark.parametrize("staff_id", ["TBC", "", None, "deleted"])
    def test_unassigned(self, staff, staff_id):
        owner = resolve_owner(staff_id, staff)
        assert owner is UNASSIGNED
        assert owner.color == UNASSIGNED_COLOR
        assert owner.initials == "TBC"


class TestProjectVisible:

    @pytest.fixture
    def project(self):
        return Project(
            name="P",
            tasks=[
                Task(name="t", start_month=1, start_year=2025, end_month=2, end_year=2025, lead="a", support=["b"])
            ],
        )

    def test_all(self, project):
        assert project_visible(project, "ALL")
        assert project_visible(project, None)

    def test_lead_and_support_match(self, project):
        assert project_visible(project, "a")
        assert project_visible(project, "b")
        assert not project_visible(project, "c")


# ---------------------------------------------------------------------------
# Workspace documents
# ---------------------------------------------------------------------------

class TestParseWorkspace:

    def test_parses_records(self, document):
        workspace = parse_workspace(document)
        assert workspace.config == TimelineConfig(2025, 1, 2025, 12)
        assert set(workspace.staff) == {"id_1", "id_2", "org_1"}
        assert workspace.staff["org_1"].is_org is True
        assert workspace.staff["id_2"].color == "#000000"

        [project] = workspace.projects
        assert project.goals == ["Ship v1"]
        assert project.tasks == [
            Task(
                name="Design",
                start_month=2,
                start_year=2025,
                end_month=4.5,
                end_year=2025,
                lead="id_1",
                support=["id_2", "org_1"],
            )
        ]
        assert project.milestones == [Milestone(name="Beta", month=5, year=2025, icon="flag")]

    def test_missing_lead_is_unassigned(self):
        workspace = parse_workspace(
            {"projects": [{"name": "P", "tasks": [{"name": "t", "startMonth": 1, "startYear": 2026}]}]}
        )
        [t] = workspace.projects[0].tasks
        assert t.lead == "TBC"
        assert (t.end_month, t.end_year) == (1, 2026)

    def test_legacy_absolute_indices(self):
        workspace = parse_workspace(
            {
                "config": {"startYear": 2026, "startMonth": 1, "endYear": 2026, "endMonth": 12},
                "projects": [
                    {
                        "name": "Old",
                        "tasks": [{"name": "t", "start": 1, "end": 14.5, "lead": "TBC", "support": []}],
                        "milestones": [{"name": "m", "month": 2}],
                    }
                ],
            }
        )
        [t] = workspace.projects[0].tasks
        assert (t.start_month, t.start_year) == (1, 2026)
        assert (t.end_month, t.end_year) == (2.5, 2027)
        [m] = workspace.projects[0].milestones
        assert (m.month, m.year) == (2, 2026)

    def test_infinite_numbers_use_defaults(self):
        workspace = parse_workspace(
            {
                "config": {"startYear": 2026, "startMonth": 1, "endYear": 2026, "endMonth": 12},
                "projects": [{"name": "P", "tasks": [{"name": "t", "start": float("inf"), "end": "inf"}]}],
            }
        )
        [t] = workspace.projects[0].tasks
        assert (t.start_month, t.start_year) == (1, 2026)
        assert (t.end_month, t.end_year) == (1, 2026)

    def test_skips_bad_entries(self, caplog):
        workspace = parse_workspace({"staff": {"x": {"role": "no name"}}, "projects": ["junk", {"name": "ok"}]})
        assert workspace.staff == {}
        assert [p.name for p in workspace.projects] == ["ok"]
        assert "without a name" in caplog.text

    @pytest.mark.parametrize(
        "data",
        [
            [],
            "text",
            {"projects": {"a": 1}},
            {"staff": ["id_1"], "projects": []},
            {"staff": "id_1"},
            {"config": [2025, 1, 2025, 12]},
        ],
    )
    def test_structural_errors(self, data):
        with pytest.raises(ValueError):
            parse_workspace(data)

    def test_split_support(self):
        assert split_support([{"staff": "a"}, {"staff": ""}, "b"]) == ["a", "b"]
        assert split_support("Ada | Grace|") == ["Ada", "Grace"]
        assert split_support(None) == []


class TestReadWriteWorkspace:

    def test_written_file_reads_back(self, document, tmp_path):
        path = tmp_path / "out" / "roadmap.json"
        workspace = parse_workspace(document)
        write_workspace(workspace, path)

        saved = json.loads(path.read_text(encoding="utf-8"))
        assert saved["config"] == document["config"]
        assert saved["projects"][0]["tasks"][0]["support"] == [{"staff": "id_2"}, {"staff": "org_1"}]
        assert saved["staff"]["org_1"]["isOrg"] is True
        assert read_workspace(path) == workspace

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError, match="not valid JSON"):
            read_workspace(path)


# ---------------------------------------------------------------------------
# Tabular import
# ---------------------------------------------------------------------------

class TestReadWorkspaceFromTable:

    def write_csv(self, path, rows):
        path.write_text("\n".join(rows) + "\n", encoding="utf-8")
        return path

    def test_imports_tasks_and_milestones(self, tmp_path):
        path = self.write_csv(
            tmp_path / "plan.csv",
            [
                "Project,Type,Name,Start month,Start year,End month,End year,Lead,Support,Icon",
                "Platform,Task,Design,2,2025,4.5,2025,Ada Lovelace,Grace Hopper|Acme,",
                "Platform,Milestone,Beta,5,2025,,,,,flag",
                "Ops,task,Migrate,6,2025,9,2025,,,",
                "Ops,Other,Ignored,6,2025,,,,,",
            ],
        )
        workspace = read_workspace_from_table(path, TimelineConfig(2025, 1, 2025, 12))

        assert [p.name for p in workspace.projects] == ["Platform", "Ops"]
        platform, ops = workspace.projects
        [design] = platform.tasks
        assert design.end_month == 4.5
        assert workspace.staff[design.lead].name == "Ada Lovelace"
        assert [workspace.staff[s].name for s in design.support] == ["Grace Hopper", "Acme"]
        assert platform.milestones == [Milestone(name="Beta", month=5, year=2025, icon="flag")]
        assert ops.tasks[0].lead == "TBC"
        assert len(ops.tasks) == 1

    def test_reuses_staff_by_name(self, tmp_path):
        path = self.write_csv(
            tmp_path / "plan.csv",
            [
                "Project,Type,Name,Start month,Start year,Lead",
                "P,Task,A,1,2025,Ada Lovelace",
                "P,Task,B,2,2025,ada lovelace",
            ],
        )
        workspace = read_workspace_from_table(path)
        assert len(workspace.staff) == 1
        a, b = workspace.projects[0].tasks
        assert a.lead == b.lead

    def test_missing_columns(self, tmp_path):
        path = self.write_csv(tmp_path / "plan.csv", ["Project,Name", "P,A"])
        with pytest.raises(ValueError, match="Missing columns"):
            read_workspace_from_table(path)
