from __future__ import annotations

from collections.abc import Iterator, Sequence

from ..models.decoded_table import CellValue, DecodedTable, NormalizedRecord

"""Ingestion normalizer: DecodedTable -> ordered header-keyed records.

- 短い行は None で埋め、長い行はヘッダ長で切り詰める
- 行順は入力順のまま (先頭 N 行プレビューで意味を持つ)
- 状態を持たないため同じ DecodedTable からは毎回同じ結果

Header collisions: the first occurrence keeps its name, later duplicates are
renamed to "<name>_<position>" (1-based column position) so no column is
silently overwritten.
"""

__all__ = [
    "iter_records",
    "normalize",
    "record_keys",
]


def record_keys(headers: Sequence[str]) -> tuple[str, ...]:
    """Resolve header names into unique record keys, preserving order.

    >>> record_keys(["id", "name", "id"])
    ('id', 'name', 'id_3')
    """
    seen: set[str] = set(headers)
    used: set[str] = set()
    keys: list[str] = []
    for index, header in enumerate(headers):
        key = header
        if key in used:
            key = f"{header}_{index + 1}"
            while key in used or (key in seen and key != header):
                key = f"{key}_{index + 1}"
        used.add(key)
        keys.append(key)
    return tuple(keys)


def _align(row: Sequence[CellValue], width: int) -> tuple[CellValue, ...]:
    if len(row) >= width:
        return tuple(row[:width])
    return tuple(row) + (None,) * (width - len(row))


def iter_records(table: DecodedTable) -> Iterator[NormalizedRecord]:
    """Lazily yield one NormalizedRecord per data row."""
    keys = record_keys(table.headers)
    width = len(keys)
    for row in table.rows:
        yield dict(zip(keys, _align(row, width)))


def normalize(table: DecodedTable) -> list[NormalizedRecord]:
    """Normalize every data row of a DecodedTable.

    Every returned record has the same keys in header order.
    """
    return list(iter_records(table))
