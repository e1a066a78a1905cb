"""Tests for header location and row extraction."""

import pytest

from pcms.fields.catalog import FieldCatalog, FieldDefinition, FieldKind, RuleSpec, StaticFieldProvider
from pcms.imports.classifier import SheetClassifier
from pcms.imports.extractor import RowExtractor
from pcms.imports.specs import FailureCode, ImportSettings, SheetType

HEADER = ["合同编号", "合同名称", "甲方", "乙方", "合同金额", "签订日期"]


def _extractor(catalog, **settings):
    return RowExtractor(SheetClassifier(catalog), ImportSettings(**settings).validate())


class TestLocateHeader:
    def test_header_on_first_row(self, catalog):
        rows = [HEADER, ["HT-001", "工程A", "甲公司", "乙公司", 1000, "2024-03-05"]]
        extraction = _extractor(catalog).extract(rows, "合同台账")
        c = extraction.classification
        assert c.sheet_type == SheetType.CONTRACT
        assert c.sheet_name == "合同台账"
        assert c.header_row_index == 0
        assert c.total_rows == 2
        assert c.data_rows == 1

    def test_blank_leading_row_skipped(self, catalog):
        rows = [
            [None, None, None],
            HEADER,
            ["HT-001", "工程A", "甲公司", "乙公司", 1000, "2024-03-05"],
            [None, "", None],
            ["HT-002", "工程B", "甲公司", "乙公司", 2000, "2024-03-06"],
        ]
        extraction = _extractor(catalog).extract(rows)
        c = extraction.classification
        assert c.header_row_index == 1
        assert c.total_rows == 5
        assert c.data_rows == 2
        assert [r.source_row_index for r in extraction] == [2, 4]

    def test_title_rows_above_header(self, catalog):
        rows = [["2024年合同台账"], ["制表单位：某公司"], HEADER, ["HT-001"]]
        extraction = _extractor(catalog).extract(rows)
        assert extraction.classification.header_row_index == 2
        assert extraction.classification.is_recognized

    def test_header_beyond_scan_window(self, catalog):
        rows = [["标题"], ["说明"], ["备注"], HEADER, ["HT-001"]]
        extraction = _extractor(catalog, header_scan_rows=2).extract(rows)
        c = extraction.classification
        assert c.sheet_type == SheetType.UNKNOWN
        assert c.failure_code == FailureCode.HEADER_NOT_FOUND
        assert c.header_row_index == -1
        assert "first 2 rows" in c.failure_reason
        assert c.data_rows == 0

    def test_best_partial_row_reported(self, catalog):
        rows = [["合同编号", "甲方", "备注"], ["HT-001", "甲公司", ""]]
        c = _extractor(catalog).extract(rows).classification
        assert c.failure_code == FailureCode.HEADER_NOT_FOUND
        assert c.contract_matches == 2
        assert c.matched_fields == ["contract_number", "party_a"]

    @pytest.mark.parametrize("rows", [[], [[None, None], ["", "  "]]])
    def test_empty_sheet(self, catalog, rows):
        c = _extractor(catalog).extract(rows).classification
        assert c.failure_code == FailureCode.EMPTY_SHEET
        assert c.header_row_index == -1


class TestRecords:
    def test_cleaned_values(self, catalog):
        rows = [HEADER, [" HT-001 ", "工程\nA", "甲公司", "乙公司", "1,234.5元", "2024/3/5"]]
        record = _extractor(catalog).extract(rows).records()[0]
        assert record.fields == {
            "contract_number": "HT-001",
            "contract_name": "工程 A",
            "party_a": "甲公司",
            "party_b": "乙公司",
            "contract_amount": 1234.5,
            "sign_date": "2024-03-05",
        }
        assert record.raw_fields[4] == "1,234.5元"
        assert not record.has_errors

    def test_numeric_ledger_date(self, catalog):
        rows = [HEADER, ["HT-001", "工程A", "甲公司", "乙公司", 1000, 20240305]]
        record = _extractor(catalog).extract(rows).records()[0]
        assert record.fields["sign_date"] == "2024-03-05"
        assert not record.has_errors

    def test_short_row_padded_with_none(self, catalog):
        rows = [HEADER, ["HT-001", "工程A"]]
        record = _extractor(catalog).extract(rows).records()[0]
        assert record.fields["party_a"] is None
        assert record.fields["sign_date"] is None

    def test_unmatched_columns_ignored(self, catalog):
        rows = [HEADER + ["备注"], ["HT-001", "工程A", "甲", "乙", 1, "2024-01-01", "随便"]]
        record = _extractor(catalog).extract(rows).records()[0]
        assert "备注" not in record.fields
        assert 6 not in record.raw_fields

    def test_field_error_keeps_raw_value(self, catalog):
        rows = [HEADER, ["HT-001", "工程A", "甲", "乙", "约三万", "2024-03-05"]]
        extraction = _extractor(catalog).extract(rows)
        records = extraction.records()
        assert len(records) == 1
        assert records[0].fields["contract_amount"] == "约三万"
        assert records[0].has_errors
        assert extraction.error_rows == 1
        [error] = extraction.field_errors
        assert error.row_index == 1
        assert error.field_name == "contract_amount"
        assert error.raw_value == "约三万"

    def test_keep_empty_rows(self, catalog):
        rows = [HEADER, [None] * 6, ["HT-001", "工程A", "甲", "乙", 1, "2024-01-01"]]
        extraction = _extractor(catalog, skip_empty_rows=False).extract(rows)
        assert extraction.classification.data_rows == 2
        records = extraction.records()
        assert len(records) == 2
        assert records[0].fields["contract_number"] is None
        assert extraction.processed_rows == 2


class TestValidation:
    def test_bad_required_date_rejects_row(self, catalog):
        rows = [
            HEADER,
            ["HT-001", "工程A", "甲公司", "乙公司", "1,000元", "2024-03-05"],
            ["HT-002", "工程B", "甲公司", "乙公司", 2000, "下周"],
        ]
        extraction = _extractor(catalog, validate_data=True).extract(rows)
        records = extraction.records()
        assert [r.fields["contract_number"] for r in records] == ["HT-001"]
        assert extraction.processed_rows == 2
        assert extraction.error_rows == 1
        assert len(extraction.field_errors) == 1
        assert extraction.field_errors[0].field_name == "sign_date"
        [rejection] = extraction.rejections
        assert rejection.row_index == 2
        assert rejection.missing_fields == ["sign_date"]
        assert rejection.field_errors[0].raw_value == "下周"

    def test_blank_required_value_rejects_row(self, catalog):
        rows = [HEADER, ["HT-001", "", "甲公司", "乙公司", 1, "2024-03-05"]]
        extraction = _extractor(catalog, validate_data=True).extract(rows)
        assert extraction.records() == []
        assert extraction.rejections[0].missing_fields == ["contract_name"]
        assert extraction.field_errors == []

    def test_without_validation_row_is_kept(self, catalog):
        rows = [HEADER, ["HT-001", "", "甲公司", "乙公司", 1, "下周"]]
        extraction = _extractor(catalog).extract(rows)
        records = extraction.records()
        assert len(records) == 1
        assert records[0].fields["sign_date"] == "下周"
        assert extraction.rejections == []
        assert extraction.error_rows == 1

    def test_unmapped_required_field_rejects_rows(self, catalog):
        rows = [HEADER[:5], ["HT-001", "工程A", "甲", "乙", 1], ["HT-002", "工程B", "甲", "乙", 2]]
        extraction = _extractor(catalog, validate_data=True).extract(rows)
        assert extraction.notes == ["required field(s) have no column in this sheet: sign_date"]
        assert extraction.records() == []
        assert extraction.processed_rows == 2
        assert extraction.error_rows == 2
        assert [r.row_index for r in extraction.rejections] == [1, 2]
        assert all(r.missing_fields == ["sign_date"] for r in extraction.rejections)

    def test_unmapped_and_blank_required_fields_listed_together(self, catalog):
        rows = [HEADER[:5], ["HT-001", "", "甲", "乙", 1]]
        extraction = _extractor(catalog, validate_data=True).extract(rows)
        [rejection] = extraction.rejections
        assert rejection.missing_fields == ["contract_name", "sign_date"]

    def test_unmapped_required_field_kept_without_validation(self, catalog):
        rows = [HEADER[:5], ["HT-001", "工程A", "甲", "乙", 1]]
        assert len(_extractor(catalog).extract(rows).records()) == 1

    def test_no_note_without_validation(self, catalog):
        extraction = _extractor(catalog).extract([HEADER[:5], ["HT-001"]])
        assert extraction.notes == []


class TestConfiguredRules:
    def test_bad_rule_config_imports_column_uncleaned(self):
        fields = [
            FieldDefinition("contract_number", "合同编号", FieldKind.CONTRACT,
                            cleaning_rules=(RuleSpec("remove_chars", {}),)),
            FieldDefinition("party_a", "甲方", FieldKind.CONTRACT),
            FieldDefinition("party_b", "乙方", FieldKind.CONTRACT),
        ]
        catalog = FieldCatalog(StaticFieldProvider(fields))
        rows = [["合同编号", "甲方", "乙方"], ["#HT-001 ", "甲", "乙"]]
        extraction = _extractor(catalog).extract(rows)
        assert len(extraction.notes) == 1
        assert "contract_number" in extraction.notes[0]
        record = extraction.records()[0]
        # trim_whitespace still applies
        assert record.fields["contract_number"] == "#HT-001"

    def test_bad_regex_replacement_imports_column_uncleaned(self):
        bad_rule = RuleSpec("regex_replace", {"pattern": "x", "replacement": "\\9"})
        fields = [
            FieldDefinition("contract_number", "合同编号", FieldKind.CONTRACT),
            FieldDefinition("contract_name", "合同名称", FieldKind.CONTRACT, cleaning_rules=(bad_rule,)),
            FieldDefinition("party_a", "甲方", FieldKind.CONTRACT),
        ]
        catalog = FieldCatalog(StaticFieldProvider(fields))
        rows = [["合同编号", "合同名称", "甲方"], ["HT-001", "xx工程", "甲"]]
        extraction = _extractor(catalog).extract(rows)
        [note] = extraction.notes
        assert "contract_name" in note
        assert "Invalid replacement" in note
        record = extraction.records()[0]
        assert record.fields["contract_name"] == "xx工程"
        assert not record.has_errors


class TestIteration:
    def test_single_pass(self, catalog):
        extraction = _extractor(catalog).extract([HEADER, ["HT-001"]])
        assert len(list(extraction)) == 1
        with pytest.raises(RuntimeError, match="already extracted"):
            list(extraction)

    def test_unrecognized_sheet_yields_nothing(self, catalog):
        extraction = _extractor(catalog).extract([["编号", "名称"], ["1", "x"]])
        assert extraction.kind is None
        assert extraction.records() == []
        assert extraction.processed_rows == 0

    def test_counters_bounded(self, catalog):
        rows = [HEADER] + [
            ["HT-%03d" % i, "工程", "甲", "乙", "x" if i % 2 else 1, "2024-01-01"] for i in range(6)
        ] + [[None] * 6]
        extraction = _extractor(catalog, validate_data=True).extract(rows)
        records = extraction.records()
        assert len(records) <= extraction.classification.data_rows
        assert extraction.error_rows <= extraction.processed_rows
        assert len(records) == 3
        assert extraction.error_rows == 3
