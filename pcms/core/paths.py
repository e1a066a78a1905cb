"""
Path utilities for PCMS.

Directory creation and import file discovery.
"""

from pathlib import Path
from typing import Iterable, List


def ensure_directory(path: Path) -> Path:
    """Ensure a directory exists, creating if necessary. Returns path for chaining."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def find_import_files(folder: Path, extensions: Iterable[str]) -> List[Path]:
    """
    List spreadsheet files directly inside ``folder``, sorted by name.

    Excel lock files (``~$name.xlsx``) are ignored.
    """
    if not folder.exists():
        return []

    wanted = {e.lower() if e.startswith(".") else f".{e.lower()}" for e in extensions}
    return sorted(
        p for p in folder.iterdir()
        if p.is_file() and p.suffix.lower() in wanted and not p.name.startswith("~$")
    )
