"""Tests for field configuration CRUD."""

import json

import pytest

from pcms.fields.manage import (
    add_alias,
    create_field,
    delete_field,
    get_field,
    list_fields,
    set_cleaning_rule,
    update_field,
)


class TestCreateField:
    def test_create_appends_display_order(self, seeded_db):
        last = max(f["display_order"] for f in list_fields(seeded_db, "contract"))
        field_id = create_field(seeded_db, "contract", "project_code", "项目编码", ["项目代码"])
        row = get_field(seeded_db, "contract", "project_code")
        assert row["id"] == field_id
        assert row["display_order"] == last + 1
        assert row["aliases"] == "项目代码"
        assert row["category"] == "extended"

    def test_duplicate_rejected(self, seeded_db):
        with pytest.raises(ValueError, match="already exists"):
            create_field(seeded_db, "contract", "contract_number", "合同编号")

    def test_blank_rejected(self, seeded_db):
        with pytest.raises(ValueError):
            create_field(seeded_db, "contract", "  ", "x")

    def test_unknown_kind_or_type_rejected(self, seeded_db):
        with pytest.raises(ValueError):
            create_field(seeded_db, "invoice", "x", "X")
        with pytest.raises(ValueError):
            create_field(seeded_db, "contract", "x", "X", data_type="blob")


def test_list_fields_filters(seeded_db):
    contract = list_fields(seeded_db, "contract")
    assert contract and all(f["kind"] == "contract" for f in contract)
    everything = list_fields(seeded_db)
    assert len(everything) > len(contract)


def test_update_field_whitelist(seeded_db):
    row = get_field(seeded_db, "contract", "party_b")
    assert update_field(seeded_db, row["id"], is_required=False, aliases=["乙方单位", "承包方"])
    updated = get_field(seeded_db, "contract", "party_b")
    assert updated["is_required"] == 0
    assert updated["aliases"] == "乙方单位,承包方"

    with pytest.raises(ValueError, match="field_name"):
        update_field(seeded_db, row["id"], field_name="hack")


def test_inactive_fields_hidden_by_default(seeded_db):
    row = get_field(seeded_db, "contract", "party_b")
    update_field(seeded_db, row["id"], is_active=False)
    names = [f["field_name"] for f in list_fields(seeded_db, "contract")]
    assert "party_b" not in names
    names = [f["field_name"] for f in list_fields(seeded_db, "contract", include_inactive=True)]
    assert "party_b" in names


class TestAddAlias:
    def test_adds_once(self, seeded_db):
        assert add_alias(seeded_db, "contract", "contract_number", "合同编码") == ["合同号", "合同编码"]
        assert add_alias(seeded_db, "contract", "contract_number", "合同编码") == ["合同号", "合同编码"]

    def test_missing_field(self, seeded_db):
        with pytest.raises(ValueError, match="not found"):
            add_alias(seeded_db, "contract", "nope", "x")

    def test_blank_alias(self, seeded_db):
        with pytest.raises(ValueError):
            add_alias(seeded_db, "contract", "contract_number", "  ")


def test_delete_field_removes_rules(seeded_db):
    row = get_field(seeded_db, "contract", "contract_amount")
    assert delete_field(seeded_db, row["id"])
    assert get_field(seeded_db, "contract", "contract_amount") is None
    n = seeded_db.execute(
        "SELECT COUNT(*) FROM cleaning_rules WHERE field_name = 'contract_amount'"
    ).fetchone()[0]
    assert n == 0
    assert delete_field(seeded_db, row["id"]) is False


class TestSetCleaningRule:
    def test_upsert(self, seeded_db):
        set_cleaning_rule(seeded_db, "contract", "contract_number", "case", {"mode": "upper"})
        set_cleaning_rule(seeded_db, "contract", "contract_number", "case", {"mode": "lower"}, priority=2)
        rows = seeded_db.execute(
            "SELECT rule_config, priority FROM cleaning_rules "
            "WHERE field_name = 'contract_number' AND cleaning_type = 'case'"
        ).fetchall()
        assert len(rows) == 1
        assert json.loads(rows[0]["rule_config"]) == {"mode": "lower"}
        assert rows[0]["priority"] == 2

    def test_unknown_type_rejected(self, seeded_db):
        with pytest.raises(ValueError, match="Unknown cleaning type"):
            set_cleaning_rule(seeded_db, "contract", "contract_number", "shout", {})

    def test_bad_config_rejected(self, seeded_db):
        with pytest.raises(ValueError):
            set_cleaning_rule(seeded_db, "contract", "contract_number", "regex_replace", {"pattern": "("})

    def test_bad_replacement_rejected(self, seeded_db):
        with pytest.raises(ValueError, match="Invalid replacement"):
            set_cleaning_rule(
                seeded_db, "contract", "contract_name", "regex_replace",
                {"pattern": "x", "replacement": "\\9"},
            )
        n = seeded_db.execute(
            "SELECT COUNT(*) FROM cleaning_rules WHERE cleaning_type = 'regex_replace'"
        ).fetchone()[0]
        assert n == 0
