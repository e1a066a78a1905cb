"""
Header matching: spreadsheet columns onto canonical fields.

Two passes over the header row. The exact pass compares normalized header
text against each field's name, label and aliases and always runs first, so
an exact match anywhere in the row beats any fuzzy candidate. The fuzzy pass
(fuzzy mode only) looks at columns still unmatched and scores term
containment and rapidfuzz similarity against the threshold.
"""

from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from rapidfuzz import fuzz

from pcms.core.logging import get_logger
from pcms.fields.catalog import FieldDefinition, normalize_name
from pcms.imports.specs import HeaderMatchResult, MatchMode

logger = get_logger("pcms.imports.matcher")

EXACT_CONFIDENCE = 1.0
SUBSTRING_CONFIDENCE = 0.9
MAX_FUZZY_CONFIDENCE = 0.99
MIN_SUBSTRING_TERM = 2

# (confidence, matched term length, field position, match type)
Candidate = Tuple[float, int, int, str]


def _rank(candidate: Candidate) -> Tuple[float, int, int]:
    confidence, term_len, position, _ = candidate
    return (-confidence, -term_len, position)


class HeaderMatcher:
    """Maps a header row onto a list of candidate fields."""

    def __init__(self, mode: MatchMode = MatchMode.STRICT, fuzzy_threshold: float = 0.8):
        self.mode = MatchMode(mode)
        self.fuzzy_threshold = fuzzy_threshold

    def match(
        self, header_row: Sequence[Any], candidate_fields: Sequence[FieldDefinition]
    ) -> HeaderMatchResult:
        """
        Match every column of ``header_row`` against ``candidate_fields``.

        Candidate order is the final tie-break. Never raises; an empty row or
        empty field list yields a result with zero matches.
        """
        headers: Dict[int, str] = {}
        for col, cell in enumerate(header_row):
            text = normalize_name(cell)
            if text:
                headers[col] = text

        terms = [f.all_names() for f in candidate_fields]
        result = HeaderMatchResult()
        claimed: Set[int] = set()

        # Exact pass
        for col in sorted(headers):
            candidates = [
                (EXACT_CONFIDENCE, len(headers[col]), pos, "exact")
                for pos, names in enumerate(terms)
                if headers[col] in names
            ]
            self._claim(result, claimed, col, candidates, candidate_fields)

        if self.mode == MatchMode.FUZZY:
            for col in sorted(headers):
                if col in result.mapping:
                    continue
                candidates = []
                for pos, names in enumerate(terms):
                    if pos in claimed:
                        continue
                    scored = self._fuzzy_score(headers[col], names)
                    if scored and scored[0] >= self.fuzzy_threshold:
                        candidates.append((scored[0], scored[1], pos, scored[2]))
                self._claim(result, claimed, col, candidates, candidate_fields)

        result.unmatched_columns = {
            col for col in range(len(header_row)) if col not in result.mapping
        }
        logger.debug(
            "Matched %d of %d header columns (%s mode)",
            result.matched_count, len(headers), self.mode.value,
        )
        return result

    @staticmethod
    def _claim(
        result: HeaderMatchResult,
        claimed: Set[int],
        col: int,
        candidates: List[Candidate],
        candidate_fields: Sequence[FieldDefinition],
    ) -> None:
        """Give ``col`` its best candidate field not already claimed."""
        for confidence, _, pos, match_type in sorted(candidates, key=_rank):
            if pos in claimed:
                continue
            claimed.add(pos)
            result.mapping[col] = candidate_fields[pos]
            result.confidence[col] = confidence
            result.match_types[col] = match_type
            return

    @staticmethod
    def _fuzzy_score(header: str, names: List[str]) -> Optional[Tuple[float, int, str]]:
        """Best (score, term length, match type) of ``header`` over one field's terms."""
        best: Optional[Tuple[float, int, str]] = None
        for term in names:
            ratio = min(fuzz.ratio(header, term) / 100.0, MAX_FUZZY_CONFIDENCE)
            score, match_type = ratio, "fuzzy"
            if len(term) >= MIN_SUBSTRING_TERM and term in header and SUBSTRING_CONFIDENCE > ratio:
                score, match_type = SUBSTRING_CONFIDENCE, "substring"
            if best is None or (score, len(term)) > (best[0], best[1]):
                best = (score, len(term), match_type)
        return best
