from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

"""RawFile and TabularFormat domain models.

RawFile is the immutable payload of one submission (bytes + declared name + MIME).
TabularFormat is derived from it by tabular.decoder.detect_format.
"""

__all__ = [
    "RawFile",
    "TabularFormat",
]


class TabularFormat(Enum):
    """Supported tabular encodings.

    - CSV: comma-delimited UTF-8 text
    - LEGACY_EXCEL: binary .xls workbook
    - MODERN_EXCEL: OOXML .xlsx workbook
    """
    CSV = "csv"
    LEGACY_EXCEL = "xls"
    MODERN_EXCEL = "xlsx"


MIME_FORMATS: dict[str, TabularFormat] = {
    "text/csv": TabularFormat.CSV,
    "application/csv": TabularFormat.CSV,
    "application/vnd.ms-excel": TabularFormat.LEGACY_EXCEL,
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": TabularFormat.MODERN_EXCEL,
}

EXTENSION_FORMATS: dict[str, TabularFormat] = {
    ".csv": TabularFormat.CSV,
    ".xls": TabularFormat.LEGACY_EXCEL,
    ".xlsx": TabularFormat.MODERN_EXCEL,
}

# ブラウザ/HTTP クライアントが付けがちな汎用 MIME (拡張子で判定する)
GENERIC_MIME_TYPES = frozenset({
    "application/octet-stream",
    "binary/octet-stream",
    "application/zip",
    "application/x-zip-compressed",
    "text/plain",
})


@dataclass(frozen=True)
class RawFile:
    """Immutable byte payload of one submission."""
    content: bytes
    name: str
    mime_type: str | None = None

    @property
    def extension(self) -> str:
        return Path(self.name).suffix.lower()

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_path(cls, path: Path) -> RawFile:
        """Read a file from disk, guessing the MIME type from its name."""
        mime, _ = mimetypes.guess_type(path.name)
        return cls(content=path.read_bytes(), name=path.name, mime_type=mime)

