from __future__ import annotations

from pathlib import Path

import pytest

from tabular_intake.models.raw_file import RawFile
from tabular_intake.tabular.decoder import MalformedInputError, UnsupportedFormatError
from tabular_intake.tabular.preview import build_preview


def _csv(rows: int) -> RawFile:
    body = "id,name\n" + "".join(f"{i},n{i}\n" for i in range(rows))
    return RawFile(content=body.encode("utf-8"), name="people.csv", mime_type="text/csv")


def test_build_preview_limits_rows():
    preview = build_preview(_csv(10), data_rows=4, preview_rows=2)
    assert preview.file_name == "people.csv"
    assert preview.sheet_name == "CSV Data"
    assert preview.total_rows == 10
    assert preview.total_columns == 2
    assert preview.headers == ("id", "name")
    assert [r["id"] for r in preview.data] == ["0", "1", "2", "3"]
    assert preview.preview == preview.data[:2]


def test_build_preview_small_file_returns_everything():
    preview = build_preview(_csv(3))
    assert len(preview.data) == 3
    assert len(preview.preview) == 3


def test_build_preview_zero_rows():
    preview = build_preview(_csv(3), data_rows=0, preview_rows=0)
    assert preview.data == []
    assert preview.preview == []
    assert preview.total_rows == 3


def test_build_preview_xlsx(xlsx_factory):
    path: Path = xlsx_factory("book.xlsx", {"Customers": [["id", "id"], [1, 2]], "Other": [["x"]]})
    preview = build_preview(RawFile.from_path(path))
    assert preview.sheet_name == "Customers"
    assert preview.headers == ("id", "id_2")
    assert preview.data == [{"id": 1, "id_2": 2}]
    assert preview.describe() == "file=book.xlsx sheet=Customers rows=1 columns=2"


def test_build_preview_propagates_decode_errors():
    with pytest.raises(UnsupportedFormatError):
        build_preview(RawFile(content=b"x", name="a.pdf"))
    with pytest.raises(MalformedInputError):
        build_preview(RawFile(content=b"\n\n", name="a.csv"))
