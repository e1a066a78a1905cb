"""Tests for import settings and job models."""

import pytest

from pcms.imports.errors import SettingsError
from pcms.imports.specs import (
    ErrorType,
    ImportJob,
    ImportSettings,
    JobError,
    JobStatus,
    MatchMode,
    UpdateFrequency,
)


class TestImportSettings:
    def test_defaults(self):
        s = ImportSettings().validate()
        assert s.match_mode == MatchMode.STRICT
        assert s.min_match_fields == 3
        assert s.skip_empty_rows is True
        assert s.validate_data is False

    def test_from_dict_mixed_keys(self):
        s = ImportSettings.from_dict({
            "matchMode": "fuzzy",
            "min_match_fields": 2,
            "updateFrequency": "weekly",
            "autoUpdateEnabled": True,
        })
        assert s.match_mode == MatchMode.FUZZY
        assert s.min_match_fields == 2
        assert s.update_frequency == UpdateFrequency.WEEKLY
        assert s.auto_update_enabled is True

    def test_from_dict_over_base(self):
        base = ImportSettings(min_match_fields=5, validate_data=True)
        s = ImportSettings.from_dict({"skipEmptyRows": False}, base=base)
        assert s.min_match_fields == 5
        assert s.validate_data is True
        assert s.skip_empty_rows is False

    @pytest.mark.parametrize("data,message", [
        ({"matchMode": "psychic"}, "Unknown match mode"),
        ({"updateFrequency": "yearly"}, "Unknown update frequency"),
        ({"minMatchFields": 0}, "positive integer"),
        ({"minMatchFields": True}, "positive integer"),
        ({"headerScanRows": 2.5}, "positive integer"),
        ({"validateData": "no"}, "true or false"),
        ({"fuzzyThreshold": 0}, r"\(0, 1\]"),
        ({"fuzzyThreshold": "high"}, "must be a number"),
        ({"sheetFilter": "*"}, "Unknown import setting: sheetFilter"),
    ])
    def test_invalid(self, data, message):
        with pytest.raises(SettingsError, match=message):
            ImportSettings.from_dict(data)

    def test_settings_error_is_value_error(self):
        with pytest.raises(ValueError):
            ImportSettings(min_match_fields=-1).validate()

    def test_coerce(self):
        s = ImportSettings(min_match_fields=4)
        assert ImportSettings.coerce(s) is s
        assert ImportSettings.coerce({"minMatchFields": 4}) == s.validate()
        assert ImportSettings.coerce(None) == ImportSettings.from_config()

    def test_from_config_overrides(self):
        s = ImportSettings.from_config(min_match_fields=6, match_mode=None)
        assert s.min_match_fields == 6
        assert s.match_mode == MatchMode.STRICT

    def test_to_dict_round_trips_through_from_dict(self):
        s = ImportSettings(match_mode="fuzzy", fuzzy_threshold=0.7).validate()
        data = s.to_dict()
        assert data["match_mode"] == "fuzzy"
        assert data["update_frequency"] == "daily"
        assert ImportSettings.from_dict(data) == s


class TestImportJob:
    def test_lifecycle_flags(self):
        job = ImportJob(id="j1")
        assert job.status == JobStatus.PENDING
        assert not job.is_finished
        job.status = JobStatus.FAILED
        assert job.is_finished

    def test_errors_of(self):
        job = ImportJob(id="j1", errors=[
            JobError(ErrorType.FILE, "file not found", file_path="a.xlsx"),
            JobError(ErrorType.ROW, "required field(s) missing", row_index=3),
            JobError(ErrorType.FILE, "corrupt", file_path="b.xlsx"),
        ])
        assert [e.file_path for e in job.errors_of(ErrorType.FILE)] == ["a.xlsx", "b.xlsx"]
        assert job.errors_of(ErrorType.SHEET) == []

    def test_to_dict(self):
        job = ImportJob(id="j1", file_paths=["a.xlsx"], settings=ImportSettings().validate())
        job.errors.append(JobError(ErrorType.SHEET, "no header", sheet_name="S", details={"failure_code": "ambiguous"}))
        data = job.to_dict()
        assert data["status"] == "pending"
        assert data["settings"]["match_mode"] == "strict"
        assert data["totals"]["files"] == 0
        assert data["errors"] == [{
            "type": "sheet", "message": "no header", "file_path": None,
            "sheet_name": "S", "row_index": None, "details": {"failure_code": "ambiguous"},
        }]
