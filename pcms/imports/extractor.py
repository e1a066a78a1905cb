"""
Row extraction: locate the header row, classify, then clean data rows lazily.

    extraction = RowExtractor(classifier, settings).extract(sheet.rows, sheet.name)
    if extraction.classification.is_recognized:
        for record in extraction:
            sink.persist(extraction.kind, record, meta)
    extraction.error_rows, extraction.rejections   # final after iteration
"""

from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from pcms.core.logging import get_logger
from pcms.fields.catalog import FieldDefinition, FieldKind
from pcms.imports.classifier import SheetClassifier
from pcms.imports.cleaning import CleaningRule, apply_rules, rules_for_field
from pcms.imports.errors import CleaningError
from pcms.imports.reader import is_blank, is_blank_row
from pcms.imports.specs import (
    ExtractedRecord,
    FailureCode,
    FieldError,
    ImportSettings,
    RowRejection,
    WorksheetClassification,
)

logger = get_logger("pcms.imports.extractor")


class WorksheetExtraction:
    """
    Classification of one worksheet plus a single-pass record iterator.

    ``classification`` is final on construction. Counters (processed_rows,
    error_rows, rejections, field_errors) grow while iterating and are
    complete once the iterator is exhausted.
    """

    def __init__(
        self,
        sheet_name: str,
        rows: List[List[Any]],
        classification: WorksheetClassification,
        settings: ImportSettings,
        rules: Optional[Dict[int, List[CleaningRule]]] = None,
        notes: Optional[List[str]] = None,
        unmapped_required: Sequence[str] = (),
    ):
        self.sheet_name = sheet_name
        self.classification = classification
        self.settings = settings
        self.notes = list(notes or [])       # sheet-level warnings (config problems, unmapped required fields)
        self.processed_rows = 0
        self.error_rows = 0
        self.rejections: List[RowRejection] = []
        self.field_errors: List[FieldError] = []
        self._rows = rows
        self._rules = rules or {}
        self._unmapped_required = list(unmapped_required)
        self._consumed = False

    @property
    def kind(self) -> Optional[FieldKind]:
        return self.classification.kind

    def __iter__(self) -> Iterator[ExtractedRecord]:
        if self._consumed:
            raise RuntimeError(f"Worksheet '{self.sheet_name}' was already extracted")
        self._consumed = True
        if not self.classification.is_recognized:
            return iter(())
        return self._generate()

    def records(self) -> List[ExtractedRecord]:
        """Consume the iterator into a list."""
        return list(self)

    def _generate(self) -> Iterator[ExtractedRecord]:
        mapping = self.classification.match_result.mapping
        columns = sorted(mapping)
        start = self.classification.header_row_index + 1

        for idx in range(start, len(self._rows)):
            row = self._rows[idx]
            if self.settings.skip_empty_rows and is_blank_row(row):
                continue
            self.processed_rows += 1

            record = ExtractedRecord(source_row_index=idx)
            failed = set()
            for col in columns:
                field = mapping[col]
                raw = row[col] if col < len(row) else None
                record.raw_fields[col] = raw
                value = raw.strip() if self.settings.trim_whitespace and isinstance(raw, str) else raw
                try:
                    value = apply_rules(value, self._rules.get(col, ()))
                except CleaningError as e:
                    record.errors.append(FieldError(idx, field.name, raw, str(e)))
                    failed.add(field.name)
                    value = raw
                record.fields[field.name] = value
            self.field_errors.extend(record.errors)

            if self.settings.validate_data:
                # A required field with no column is missing from every row
                missing = [
                    mapping[col].name for col in columns
                    if mapping[col].required
                    and (mapping[col].name in failed or is_blank(record.fields[mapping[col].name]))
                ] + self._unmapped_required
                if missing:
                    self.error_rows += 1
                    self.rejections.append(RowRejection(
                        row_index=idx,
                        reason=f"required field(s) missing or invalid: {', '.join(missing)}",
                        missing_fields=missing,
                        field_errors=list(record.errors),
                    ))
                    continue

            if record.has_errors:
                self.error_rows += 1
            yield record


class RowExtractor:
    """Header location, classification and row cleaning for one worksheet."""

    def __init__(self, classifier: SheetClassifier, settings: ImportSettings):
        self.classifier = classifier
        self.settings = settings

    def locate_header(self, rows: Sequence[Sequence[Any]]) -> Tuple[int, WorksheetClassification]:
        """
        Find the first qualifying header row within the scan window.

        Blank rows are skipped and do not count against ``header_scan_rows``.
        Returns ``(-1, classification)`` when no row qualifies.
        """
        needed = self.settings.min_match_fields
        best: Optional[WorksheetClassification] = None
        scanned = 0

        for idx, row in enumerate(rows):
            if is_blank_row(row):
                continue
            scanned += 1
            if scanned > self.settings.header_scan_rows:
                break
            result = self.classifier.classify(row, needed)
            top = max(result.contract_matches, result.procurement_matches)
            if top >= needed:
                return idx, result
            if best is None or top > max(best.contract_matches, best.procurement_matches):
                best = result

        if best is None:
            return -1, WorksheetClassification.unrecognized(
                FailureCode.EMPTY_SHEET, "worksheet has no data"
            )
        top = max(best.contract_matches, best.procurement_matches)
        return -1, WorksheetClassification.unrecognized(
            FailureCode.HEADER_NOT_FOUND,
            f"no header row found in the first {self.settings.header_scan_rows} rows "
            f"(best row matched {top} fields, need at least {needed})",
            best.contract_matches,
            best.procurement_matches,
            matched_fields=best.matched_fields,
        )

    def extract(self, cells: List[List[Any]], sheet_name: str = "") -> WorksheetExtraction:
        header_idx, classification = self.locate_header(cells)
        classification.sheet_name = sheet_name
        classification.header_row_index = header_idx
        classification.total_rows = len(cells)
        if header_idx >= 0:
            body = cells[header_idx + 1:]
            if self.settings.skip_empty_rows:
                body = [r for r in body if not is_blank_row(r)]
            classification.data_rows = len(body)

        if not classification.is_recognized:
            logger.info(
                "Sheet '%s' not recognized: %s", sheet_name, classification.failure_reason
            )
            return WorksheetExtraction(sheet_name, cells, classification, self.settings)

        rules, notes = self._build_rules(classification)
        unmapped: List[str] = []
        if self.settings.validate_data:
            unmapped = self._unmapped_required(classification)
            if unmapped:
                notes.append(
                    f"required field(s) have no column in this sheet: {', '.join(unmapped)}"
                )

        logger.info(
            "Sheet '%s' recognized as %s (%d fields, header row %d, %d data rows)",
            sheet_name, classification.sheet_type.value, classification.matched_fields_count,
            header_idx, classification.data_rows,
        )
        return WorksheetExtraction(
            sheet_name, cells, classification, self.settings, rules, notes, unmapped
        )

    @staticmethod
    def _build_rules(
        classification: WorksheetClassification,
    ) -> Tuple[Dict[int, List[CleaningRule]], List[str]]:
        rules: Dict[int, List[CleaningRule]] = {}
        notes: List[str] = []
        for col, field in classification.match_result.mapping.items():
            try:
                rules[col] = rules_for_field(field)
            except ValueError as e:
                # Bad stored rule config: import the column uncleaned
                notes.append(f"cleaning rules for '{field.name}' ignored: {e}")
                rules[col] = []
        return rules, notes

    def _unmapped_required(self, classification: WorksheetClassification) -> List[str]:
        mapped = set(classification.matched_fields)
        fields: List[FieldDefinition] = self.classifier.catalog.lookup(classification.kind)
        return [f.name for f in fields if f.required and f.name not in mapped]
