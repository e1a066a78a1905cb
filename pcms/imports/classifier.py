"""
Worksheet classification: contract, procurement, or unknown.
"""

from typing import Any, Optional, Sequence

from pcms.core.logging import get_logger
from pcms.fields.catalog import FieldCatalog, FieldKind
from pcms.imports.matcher import HeaderMatcher
from pcms.imports.specs import FailureCode, WorksheetClassification

logger = get_logger("pcms.imports.classifier")


class SheetClassifier:
    """
    Decide a worksheet's kind from one header row.

    Both kinds are matched independently. The kind with the strictly larger
    match count wins, provided it reaches ``min_match_fields``. A tie at or
    above the threshold is reported as ambiguous rather than guessed.
    """

    def __init__(self, catalog: FieldCatalog, matcher: Optional[HeaderMatcher] = None):
        self.catalog = catalog
        self.matcher = matcher or HeaderMatcher()

    def classify(self, header_row: Sequence[Any], min_match_fields: int) -> WorksheetClassification:
        contract = self.matcher.match(header_row, self.catalog.lookup(FieldKind.CONTRACT))
        procurement = self.matcher.match(header_row, self.catalog.lookup(FieldKind.PROCUREMENT))
        c_count, p_count = contract.matched_count, procurement.matched_count

        if c_count >= min_match_fields and c_count > p_count:
            return WorksheetClassification.recognized(FieldKind.CONTRACT, contract, c_count, p_count)
        if p_count >= min_match_fields and p_count > c_count:
            return WorksheetClassification.recognized(FieldKind.PROCUREMENT, procurement, c_count, p_count)

        if c_count >= min_match_fields:
            reason = (
                f"ambiguous header: matched {c_count} contract and "
                f"{p_count} procurement fields"
            )
            logger.debug(reason)
            return WorksheetClassification.unrecognized(
                FailureCode.AMBIGUOUS, reason, c_count, p_count,
            )

        best = contract if c_count >= p_count else procurement
        return WorksheetClassification.unrecognized(
            FailureCode.INSUFFICIENT_MATCHES,
            f"matched {best.matched_count} fields, need at least {min_match_fields}",
            c_count,
            p_count,
            matched_fields=best.matched_fields,
        )
