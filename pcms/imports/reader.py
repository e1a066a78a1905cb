"""
Spreadsheet file reading: .xlsx/.xlsm through openpyxl, .csv through the csv module.

Cells keep their native types (str, int, float, datetime); trimming and
type conversion happen later in the extractor's cleaning rules.
"""

import csv
import io
from pathlib import Path
from typing import Any, List, Optional, Sequence

from openpyxl import load_workbook

from pcms.core.config import get_config_value
from pcms.core.logging import get_logger
from pcms.imports.errors import FileReadError
from pcms.imports.specs import SheetData

logger = get_logger("pcms.imports.reader")

DEFAULT_EXTENSIONS = (".xlsx", ".xlsm", ".csv")
DEFAULT_MAX_SIZE_MB = 50


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def is_blank_row(row: Sequence[Any]) -> bool:
    return all(is_blank(c) for c in row)


def _trim_grid(rows: List[List[Any]]) -> List[List[Any]]:
    """Drop trailing blank cells from each row and trailing blank rows."""
    trimmed = []
    for row in rows:
        end = len(row)
        while end and is_blank(row[end - 1]):
            end -= 1
        trimmed.append(list(row[:end]))
    while trimmed and not trimmed[-1]:
        trimmed.pop()
    return trimmed


def read_workbook(
    file_path: str,
    allowed_extensions: Optional[Sequence[str]] = None,
    max_file_size_mb: Optional[float] = None,
) -> List[SheetData]:
    """
    Read every worksheet of a spreadsheet file, in workbook order.

    Limits default to ``imports.limits`` in config.yaml.

    Raises:
        FileReadError: Missing, unsupported, oversized or corrupt file.
    """
    path = Path(file_path)
    if allowed_extensions is None:
        allowed_extensions = get_config_value(
            "imports", "limits", "allowed_extensions", default=DEFAULT_EXTENSIONS
        )
    if max_file_size_mb is None:
        max_file_size_mb = get_config_value(
            "imports", "limits", "max_file_size_mb", default=DEFAULT_MAX_SIZE_MB
        )

    if not path.is_file():
        raise FileReadError(str(file_path), "file not found")
    ext = path.suffix.lower()
    if ext not in {e.lower() for e in allowed_extensions}:
        raise FileReadError(
            str(file_path),
            f"unsupported file type '{ext or '(none)'}' (expected {', '.join(allowed_extensions)})",
        )
    size_mb = path.stat().st_size / (1024 * 1024)
    if size_mb > max_file_size_mb:
        raise FileReadError(
            str(file_path), f"file is {size_mb:.1f} MB, limit is {max_file_size_mb} MB"
        )

    if ext == ".csv":
        sheets = [_read_csv(path)]
    else:
        sheets = _read_xlsx(path)

    logger.debug("Read %s: %d worksheet(s)", path.name, len(sheets))
    return sheets


def _read_xlsx(path: Path) -> List[SheetData]:
    # openpyxl surfaces damaged parts as whatever its XML or zip layer raises
    # (ParseError, BadZipFile, KeyError, ...); any of them means a bad file
    try:
        wb = load_workbook(str(path), read_only=True, data_only=True)
    except Exception as e:
        raise FileReadError(str(path), f"cannot open workbook: {type(e).__name__}: {e}")

    try:
        sheets = []
        for ws in wb.worksheets:
            rows = [list(r) for r in ws.iter_rows(values_only=True)]
            sheets.append(SheetData(ws.title, _trim_grid(rows)))
        return sheets
    except Exception as e:
        raise FileReadError(str(path), f"corrupt workbook: {type(e).__name__}: {e}")
    finally:
        wb.close()


def _read_csv(path: Path) -> SheetData:
    try:
        data = path.read_bytes()
    except OSError as e:
        raise FileReadError(str(path), f"cannot read file: {e}")

    # Try UTF-8 first, then GBK (Excel's default for Chinese CSV exports)
    for enc in ("utf-8-sig", "gb18030"):
        try:
            text = data.decode(enc)
            break
        except UnicodeDecodeError:
            continue
    else:
        text = data.decode("latin-1")

    try:
        rows = [list(r) for r in csv.reader(io.StringIO(text))]
    except csv.Error as e:
        raise FileReadError(str(path), f"malformed CSV: {e}")
    return SheetData(path.stem, _trim_grid(rows))
