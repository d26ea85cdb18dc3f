"""
CSV Storage
===========

Append-only log of tracking results. Each row is one query × source
measurement. The file gets a header row when it is first created.
"""

import csv
from pathlib import Path
from typing import Iterable, Optional, Union
import structlog

from .orchestrator import OutputRow

logger = structlog.get_logger(__name__)

# Column order of the CSV file; must match OutputRow.as_record()
HEADERS: tuple[str, ...] = (
    "date",
    "source",
    "query_name",
    "query_id",
    "category",
    "prominence_score",
    "mentioned",
    "recommended",
    "position",
    "citation_count",
    "data_source",
    "ds_pages",
    "tokens",
)


def _writer(handle):
    return csv.DictWriter(handle, fieldnames=HEADERS, lineterminator="\n")


def init_csv(filepath: Union[str, Path]) -> None:
    """
    Make sure the CSV file exists and starts with the header row.

    Parent directories are created as needed. A file that already has
    content is left untouched.
    """
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)

    if path.exists() and path.read_text(encoding="utf-8").strip():
        return

    with path.open("w", encoding="utf-8", newline="") as handle:
        _writer(handle).writeheader()
    logger.info("csv_initialized", path=str(path))


def append_results(filepath: Union[str, Path], rows: Optional[Iterable[OutputRow]]) -> int:
    """
    Append result rows to an initialized CSV file.

    Returns:
        Number of rows written
    """
    records = [row.as_record() for row in rows or ()]
    if not records:
        return 0

    with Path(filepath).open("a", encoding="utf-8", newline="") as handle:
        _writer(handle).writerows(records)

    logger.info("csv_rows_appended", path=str(filepath), rows=len(records))
    return len(records)
