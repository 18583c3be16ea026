"""Projection of Azure DevOps records into spreadsheet rows.

Handles all record-to-row conversion using the section schemas from
``config.py``. Values are passed through untouched (no validation,
truncation or formula escaping), so the sheet receives exactly what the
backend returned. No fetching or export logic belongs here.
"""

import logging
from typing import Any, Optional, Union

from config import Column, Section

logger = logging.getLogger(__name__)

CellValue = Union[str, int, float, None]

_MISSING = object()


def _resolve(record: Any, path: tuple[str, ...]) -> Any:
    """Walk *path* through nested dicts, returning ``_MISSING`` on any gap."""
    value = record
    for key in path:
        if not isinstance(value, dict) or key not in value:
            return _MISSING
        value = value[key]
    return value


def _join_ids(refs: Any) -> Optional[str]:
    if not isinstance(refs, list):
        return None
    ids = [
        str(ref["id"])
        for ref in refs
        if isinstance(ref, dict) and ref.get("id") is not None
    ]
    return ", ".join(ids)


def project_value(record: Any, column: Column) -> CellValue:
    """Extract one display value from *record* for *column*.

    Args:
        record: A raw record dict as returned by the Activity Source.
        column: The column definition to project.

    Returns:
        The value at the column's path, ``None`` if any key along the path is
        missing. For id-join columns, the linked ids joined with ``", "`` in
        received order (``""`` for an empty list).
    """
    value = _resolve(record, column.path)
    if value is _MISSING:
        return None
    if column.join_ids:
        return _join_ids(value)
    return value


def project_record(section: Section, record: Any) -> list[CellValue]:
    """Map one record to a row with exactly ``section.width`` values."""
    return [project_value(record, column) for column in section.columns]


def project_records(section: Section, records: list[Any]) -> list[list[CellValue]]:
    """Project every record for *section*, preserving order.

    Records with missing fields are kept; the affected cells are ``None``.
    """
    rows = [project_record(section, record) for record in records]
    logger.debug("Projected %d %s row(s)", len(rows), section.name)
    return rows
