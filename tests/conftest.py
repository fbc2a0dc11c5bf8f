# Shared pytest fixtures
from __future__ import annotations
import json
import tempfile
from collections.abc import Callable
from pathlib import Path

import httpx
import pandas as pd
import pytest

import tabular_intake.logging.init


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("INTAKE_BACKEND_URL", "INTAKE_TIMEOUT_SECONDS", "INTAKE_POLL_INTERVAL"):
        monkeypatch.delenv(name, raising=False)
    yield
    tabular_intake.logging.init.reset_logging()


@pytest.fixture()
def sample_config_yaml() -> str:
    return """backend:
  base_url: http://backend.test
  timeout_seconds: 5
  upload_path: /upload
  records_path: /jobs/{job_id}/records
polling:
  interval_seconds: 0
preview:
  data_rows: 10
  preview_rows: 2
logs_directory: ./logs
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "intake.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


def make_xlsx(path: Path, sheets: dict[str, list[list[object]]]) -> Path:
    """Write a real .xlsx file (no header/index, rows as given)."""
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for sheet, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=sheet, header=False, index=False)
    return path


@pytest.fixture()
def xlsx_factory(tmp_path: Path) -> Callable[[str, dict[str, list[list[object]]]], Path]:
    def _make(name: str, sheets: dict[str, list[list[object]]]) -> Path:
        return make_xlsx(tmp_path / name, sheets)
    return _make


def json_response(status_code: int, body: object) -> httpx.Response:
    return httpx.Response(
        status_code,
        content=json.dumps(body).encode("utf-8"),
        headers={"content-type": "application/json"},
    )


class ScriptedBackend:
    """httpx.MockTransport handler replaying scripted responses.

    - upload_responses: consumed one per POST
    - record_responses: job_id -> list of responses, consumed one per GET;
      the last entry repeats once the list is exhausted
    Every request is recorded in `requests` as (method, path).
    """

    def __init__(self) -> None:
        self.upload_responses: list[httpx.Response | Exception] = []
        self.record_responses: dict[str, list[httpx.Response | Exception]] = {}
        self.requests: list[tuple[str, str]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))
        if request.method == "POST":
            item = self.upload_responses.pop(0)
        else:
            job_id = request.url.path.split("/")[2]
            queue = self.record_responses[job_id]
            item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        # 同じ Response を使い回さない
        return httpx.Response(item.status_code, content=item.content, headers=item.headers)

    @property
    def record_fetches(self) -> list[str]:
        return [path.split("/")[2] for method, path in self.requests if method == "GET"]

    json = staticmethod(json_response)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture()
def backend() -> ScriptedBackend:
    return ScriptedBackend()
