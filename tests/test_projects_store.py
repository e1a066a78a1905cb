"""Tests for the project register and record linking."""

import pytest

from pcms.fields.catalog import FieldKind
from pcms.projects.store import ProjectLinker, create_project, find_project, list_projects


@pytest.fixture
def projects(memory_db):
    create_project(memory_db, "一号楼", code="XM-01", alias="1#楼,一期主楼")
    create_project(memory_db, "二号楼", code="XM-02")
    create_project(memory_db, "配套工程")
    return memory_db


class TestCreate:
    def test_returns_id(self, memory_db):
        assert create_project(memory_db, " 一号楼 ", code=" XM-01 ") == 1
        row = find_project(memory_db, code="XM-01")
        assert row["project_name"] == "一号楼"

    def test_blank_name_rejected(self, memory_db):
        with pytest.raises(ValueError, match="name is required"):
            create_project(memory_db, "  ")

    def test_duplicate_code_rejected(self, projects):
        with pytest.raises(ValueError, match="already exists"):
            create_project(projects, "三号楼", code="XM-01")

    def test_code_is_optional(self, projects):
        create_project(projects, "四号楼")
        assert find_project(projects, name="四号楼") is not None


class TestFind:
    def test_by_code(self, projects):
        assert find_project(projects, code="XM-02")["project_name"] == "二号楼"

    def test_code_wins_over_name(self, projects):
        assert find_project(projects, name="一号楼", code="XM-02")["project_code"] == "XM-02"

    def test_unknown_code_falls_back_to_name(self, projects):
        assert find_project(projects, name="一号楼", code="XM-99")["project_code"] == "XM-01"

    def test_by_alias(self, projects):
        assert find_project(projects, name="一期主楼")["project_code"] == "XM-01"

    def test_no_match(self, projects):
        assert find_project(projects, name="不存在") is None
        assert find_project(projects) is None

    def test_ambiguous_name(self, projects):
        create_project(projects, "配套工程", code="XM-03")
        assert find_project(projects, name="配套工程") is None


class TestLinker:
    def test_contract_name(self, projects):
        linker = ProjectLinker(projects)
        assert linker.link(FieldKind.CONTRACT, {"contract_name": "二号楼"}) == 2

    def test_procurement_name(self, projects):
        linker = ProjectLinker(projects)
        assert linker.link(FieldKind.PROCUREMENT, {"procurement_name": "配套工程"}) == 3

    def test_project_fields_preferred(self, projects):
        linker = ProjectLinker(projects)
        fields = {"contract_name": "二号楼", "project_code": "XM-01"}
        assert linker.link(FieldKind.CONTRACT, fields) == 1
        fields = {"contract_name": "二号楼", "project_name": "一号楼"}
        assert linker.link(FieldKind.CONTRACT, fields) == 1

    def test_nothing_to_link(self, projects):
        linker = ProjectLinker(projects)
        assert linker.link(FieldKind.CONTRACT, {"contract_number": "HT-001"}) is None
        assert linker.link(FieldKind.CONTRACT, {"contract_name": "  "}) is None
        assert linker.link(FieldKind.CONTRACT, {"contract_name": "别的工程"}) is None

    def test_lookups_cached(self, projects):
        linker = ProjectLinker(projects)
        assert linker.link(FieldKind.CONTRACT, {"contract_name": "二号楼"}) == 2
        projects.execute("DELETE FROM projects WHERE id = 2")
        assert linker.link(FieldKind.CONTRACT, {"contract_name": "二号楼"}) == 2


def test_list_projects(mock_db):
    create_project(mock_db, "一号楼", code="XM-01")
    create_project(mock_db, "二号楼")
    assert [p["project_name"] for p in list_projects()] == ["一号楼", "二号楼"]
