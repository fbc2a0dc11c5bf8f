from __future__ import annotations

from dataclasses import dataclass
from itertools import islice

from ..models.decoded_table import NormalizedRecord
from ..models.raw_file import RawFile
from .decoder import decode_file
from .normalizer import iter_records, record_keys

"""Local preview of a submitted file.

Same shape the upload endpoint used to answer with: file / sheet name,
row + column counts, headers, the first `data_rows` records and a shorter
`preview_rows` slice.
"""

__all__ = [
    "TablePreview",
    "build_preview",
]


@dataclass(frozen=True)
class TablePreview:
    file_name: str
    sheet_name: str
    total_rows: int
    total_columns: int
    headers: tuple[str, ...]
    data: list[NormalizedRecord]
    preview: list[NormalizedRecord]

    def describe(self) -> str:
        return (
            f"file={self.file_name} sheet={self.sheet_name} "
            f"rows={self.total_rows} columns={self.total_columns}"
        )


def build_preview(raw: RawFile, *, data_rows: int = 100, preview_rows: int = 5) -> TablePreview:
    """Decode + normalize a RawFile and keep only its first rows.

    Raises:
        UnsupportedFormatError / MalformedInputError from the decoder
    """
    table = decode_file(raw)
    data = list(islice(iter_records(table), max(data_rows, 0)))
    return TablePreview(
        file_name=raw.name,
        sheet_name=table.sheet_name,
        total_rows=table.row_count,
        total_columns=table.column_count,
        headers=record_keys(table.headers),
        data=data,
        preview=data[: max(preview_rows, 0)],
    )
