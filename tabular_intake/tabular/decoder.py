from __future__ import annotations

import csv
import io
import math
from datetime import date, datetime, time
from typing import Any

import numpy as np
import pandas as pd

from ..models.decoded_table import CellValue, DecodedTable
from ..models.raw_file import (
    EXTENSION_FORMATS,
    GENERIC_MIME_TYPES,
    MIME_FORMATS,
    RawFile,
    TabularFormat,
)

"""Tabular decoder: raw bytes + declared format -> DecodedTable.

CSV:
- UTF-8 (BOM は除去), comma-delimited, double-quote escaped
- 値は前後の空白のみ除去。引用符は CSV のクォートとしてだけ解釈する
  (` "name" ` -> name, `"say ""hi"" now"` -> `say "hi" now`)
- 空行は行として出力しない (末尾改行で幻のレコードを作らない)
- 最初の非空行がヘッダ行

Spreadsheet (.xlsx via openpyxl, .xls via xlrd):
- 先頭シートのみ。header=None で生グリッドを読み、1 行目をヘッダとする
- 型変換はコンテナがエンコードした範囲のみ (数値は数値, 文字列は文字列, 空セル -> None)
- "NA" 等の文字列を pandas の既定 NaN 変換から守るため keep_default_na=False

Empty header slots become positional placeholders (column_<n>). Duplicate
header names are kept as-is; the normalizer resolves collisions.
"""

__all__ = [
    "DecodeError",
    "UnsupportedFormatError",
    "MalformedInputError",
    "CSV_SHEET_NAME",
    "decode",
    "decode_file",
    "detect_format",
]

CSV_SHEET_NAME = "CSV Data"
PLACEHOLDER_TEMPLATE = "column_{position}"

_ENGINES = {
    TabularFormat.MODERN_EXCEL: "openpyxl",
    TabularFormat.LEGACY_EXCEL: "xlrd",
}


class DecodeError(Exception):
    """Base class for decode-time failures."""


class UnsupportedFormatError(DecodeError):
    """Raised when the declared format is not CSV / XLS / XLSX."""


class MalformedInputError(DecodeError):
    """Raised when the bytes cannot be parsed as the declared format."""


def detect_format(raw: RawFile) -> TabularFormat:
    """Derive the TabularFormat of a RawFile.

    A specific, recognized MIME type decides. When the MIME type is missing or
    generic (octet-stream, zip, text/plain) the extension is authoritative.

    Raises:
        UnsupportedFormatError: neither MIME type nor extension is recognized
    """
    mime = (raw.mime_type or "").split(";")[0].strip().lower()
    if mime and mime not in GENERIC_MIME_TYPES and mime in MIME_FORMATS:
        return MIME_FORMATS[mime]
    fmt = EXTENSION_FORMATS.get(raw.extension)
    if fmt is None:
        raise UnsupportedFormatError(
            f"unsupported file type: name={raw.name!r} mime={raw.mime_type!r} "
            "(expected .csv, .xls or .xlsx)"
        )
    return fmt


def decode(content: bytes, fmt: TabularFormat | str) -> DecodedTable:
    """Decode raw bytes of the declared format into a DecodedTable.

    Parameters
    ----------
    content: ファイルのバイト列
    fmt: TabularFormat (or its value: "csv" / "xls" / "xlsx")

    Raises
    ------
    UnsupportedFormatError: fmt is not one of the supported formats
    MalformedInputError: content cannot be parsed as fmt
    """
    fmt = _coerce_format(fmt)
    if not content or not content.strip():
        raise MalformedInputError(f"empty {fmt.value} file")
    if fmt is TabularFormat.CSV:
        return _decode_csv(content)
    return _decode_spreadsheet(content, fmt)


def decode_file(raw: RawFile) -> DecodedTable:
    """Detect the format of a RawFile and decode it."""
    return decode(raw.content, detect_format(raw))


def _coerce_format(fmt: Any) -> TabularFormat:
    if isinstance(fmt, TabularFormat):
        return fmt
    try:
        return TabularFormat(str(fmt).lower().lstrip("."))
    except ValueError:
        raise UnsupportedFormatError(f"unsupported format: {fmt!r}") from None


def _clean_text(value: str) -> str:
    return value.strip()


def _headers(cells: list[Any]) -> tuple[str, ...]:
    headers: list[str] = []
    for index, cell in enumerate(cells):
        text = _header_text(cell)
        headers.append(text if text else PLACEHOLDER_TEMPLATE.format(position=index + 1))
    return tuple(headers)


def _header_text(cell: Any) -> str:
    if cell is None:
        return ""
    if isinstance(cell, float) and cell.is_integer():
        # 数値ヘッダ (例: 2024.0) は整数表記
        return str(int(cell))
    return _clean_text(str(cell))


def _decode_csv(content: bytes) -> DecodedTable:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise MalformedInputError(f"csv is not valid UTF-8: {e}") from e

    # skipinitialspace: 区切り直後の空白を飛ばし ` "a, b"` もクォートとして読む
    reader = csv.reader(io.StringIO(text, newline=""), skipinitialspace=True)
    headers: tuple[str, ...] | None = None
    rows: list[tuple[CellValue, ...]] = []
    try:
        for raw in reader:
            cells = [_clean_text(c) for c in raw]
            if all(c == "" for c in cells):
                continue
            if headers is None:
                headers = _headers(cells)
            else:
                rows.append(tuple(cells))
    except csv.Error as e:
        raise MalformedInputError(f"csv parse error at line {reader.line_num}: {e}") from e

    if headers is None:
        raise MalformedInputError("csv has no header line")
    return DecodedTable(sheet_name=CSV_SHEET_NAME, headers=headers, rows=tuple(rows))


def _decode_spreadsheet(content: bytes, fmt: TabularFormat) -> DecodedTable:
    engine = _ENGINES[fmt]
    try:
        with pd.ExcelFile(io.BytesIO(content), engine=engine) as xls:
            if not xls.sheet_names:
                raise MalformedInputError("workbook has no sheets")
            first = xls.sheet_names[0]
            # ヘッダなしで生読み, dtype=object で数値/文字列をそのまま保持
            df = xls.parse(first, header=None, dtype=object, keep_default_na=False)
    except MalformedInputError:
        raise
    except Exception as e:
        # 壊れた zip / BIFF, エンジン固有の例外をまとめて変換
        raise MalformedInputError(f"cannot read {fmt.value} workbook: {e}") from e

    grid: list[tuple[CellValue, ...]] = []
    for values in df.itertuples(index=False, name=None):
        cells = tuple(_cell_value(v) for v in values)
        if all(c is None for c in cells):
            continue
        grid.append(cells)

    if not grid:
        raise MalformedInputError(f"sheet '{first}' has no header row")
    return DecodedTable(
        sheet_name=str(first),
        headers=_headers(list(grid[0])),
        rows=tuple(grid[1:]),
    )


def _cell_value(value: Any) -> CellValue:
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, str):
        return value if value != "" else None
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, (bool, int, float)):
        return value
    return str(value)
