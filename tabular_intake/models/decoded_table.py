from __future__ import annotations

from dataclasses import dataclass
from typing import Union

"""DecodedTable model: raw grid of headers + cell rows before normalization."""

__all__ = [
    "CellValue",
    "DecodedTable",
    "NormalizedRecord",
]

# Closed value variant for cells. 日付セルは decoder 側で ISO 文字列化済み
CellValue = Union[str, int, float, bool, None]

# header key -> cell value (insertion order = header order)
NormalizedRecord = dict[str, CellValue]


@dataclass(frozen=True)
class DecodedTable:
    """Headers and rows extracted from one file (first sheet only).

    Rows are not required to match the header length; the normalizer pads
    and truncates them.
    """
    sheet_name: str
    headers: tuple[str, ...]
    rows: tuple[tuple[CellValue, ...], ...]

    @property
    def column_count(self) -> int:
        return len(self.headers)

    @property
    def row_count(self) -> int:
        return len(self.rows)
