"""
Per-year series for charting attribute values.

Both helpers work on grouped tables keyed by ``(year, attribute value)`` whose
buckets have already been aggregated to numbers.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from histmap.core.table import MultiKeyTable

AGG_SUM = "sum"
AGG_COUNT = "count"
AGG_TYPES = (AGG_SUM, AGG_COUNT)

POINT_IN_TIME = "point in time"
TIME_INTERVAL = "time interval"
COURSES = (POINT_IN_TIME, TIME_INTERVAL)

Row = Dict[str, Any]


def year_keys(grouped: MultiKeyTable) -> List[int]:
    return [y for y in grouped.get_all_keys([None]) if y is not None]


def dense_series(
    grouped: MultiKeyTable,
    values: Sequence[Any],
    year_from: Optional[int] = None,
    year_to: Optional[int] = None,
) -> List[Row]:
    """
    One row per year from ``year_from`` to ``year_to`` (inclusive, ascending).

    Missing bounds default to the smallest/largest year present in ``grouped``.
    Years without data are filled with 0 for every value.
    """
    years = year_keys(grouped)
    start = year_from if year_from is not None else min(years, default=None)
    end = year_to if year_to is not None else max(years, default=None)
    if start is None or end is None:
        return []
    rows: List[Row] = []
    for year in range(int(start), int(end) + 1):
        row: Row = {"year": year}
        for value in values:
            row[value] = grouped.get_item([year, value]) or 0
        rows.append(row)
    return rows


def stock_series(from_rows: List[Row], to_rows: List[Row], values: Sequence[Any]) -> List[Row]:
    """
    Running totals of activations minus expirations.

    ``cumulative[y] = cumulative[y - 1] + from[y] - to[y]``, accumulated in
    ascending year order.
    """
    by_year: Dict[int, Row] = {row["year"]: dict(row) for row in from_rows}
    for row in to_rows:
        target = by_year.setdefault(row["year"], {"year": row["year"], **{v: 0 for v in values}})
        for value in values:
            target[value] -= row[value]
    rows = [by_year[year] for year in sorted(by_year)]
    for i in range(1, len(rows)):
        for value in values:
            rows[i][value] += rows[i - 1][value]
    return rows
