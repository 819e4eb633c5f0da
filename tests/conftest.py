"""Shared pytest fixtures and in-memory fakes."""
from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from shiftsync.config import AppConfig
from shiftsync.sheets.client import SheetsClient
from shiftsync.store.database import Database
from shiftsync.store.repository import Repository

TZ = "Asia/Ho_Chi_Minh"
SHEETS_URL = "https://script.google.com/macros/s/test/exec"


# ---------------------------------------------------------------------------
# gspread fakes
# ---------------------------------------------------------------------------


class FakeWorksheet:
    """Subset of gspread.Worksheet used by SheetsClient."""

    def __init__(self, title: str, rows: int = 1000, cols: int = 26):
        self.title = title
        self.row_count = rows
        self.col_count = cols
        self.cells: List[List[Any]] = []
        self.formats: List[tuple] = []
        self.input_options: List[str] = []
        self.clear_calls = 0

    def clear(self) -> None:
        self.cells = []
        self.clear_calls += 1

    def resize(self, rows: Optional[int] = None, cols: Optional[int] = None) -> None:
        if rows is not None:
            self.row_count = rows
        if cols is not None:
            self.col_count = cols

    def update(self, values=None, range_name=None, value_input_option=None) -> None:
        assert range_name == "A1"
        assert len(values) <= self.row_count
        self.cells = [list(r) for r in values]
        self.input_options.append(value_input_option)

    def format(self, range_name: str, fmt: Dict[str, Any]) -> None:
        self.formats.append((range_name, fmt))

    def get_values(self, **kwargs) -> List[List[Any]]:
        return [list(r) for r in self.cells]


class FakeSpreadsheet:
    def __init__(self, *sheets: FakeWorksheet):
        self._sheets = list(sheets)

    def worksheets(self) -> List[FakeWorksheet]:
        return list(self._sheets)

    def add_worksheet(self, title: str, rows: int, cols: int) -> FakeWorksheet:
        ws = FakeWorksheet(title, rows=rows, cols=cols)
        self._sheets.append(ws)
        return ws

    def sheet(self, title: str) -> FakeWorksheet:
        for ws in self._sheets:
            if ws.title == title:
                return ws
        raise KeyError(title)


# ---------------------------------------------------------------------------
# transport fakes
# ---------------------------------------------------------------------------


class FakeTransport:
    """Records pushes, serves a canned pull response."""

    def __init__(self, pull: Any = None, push_response: str = '{"success": true}',
                 error: Optional[Exception] = None, delay: float = 0):
        self.pull_text = pull if isinstance(pull, str) or pull is None else json.dumps(pull)
        self.push_response = push_response
        self.error = error
        self.delay = delay
        self.pushes: List[Dict[str, Any]] = []
        self.fetches = 0
        self.active = 0
        self.max_active = 0

    async def _enter(self) -> None:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
        finally:
            self.active -= 1

    async def fetch(self) -> str:
        self.fetches += 1
        await self._enter()
        return self.pull_text

    async def push(self, envelope: Dict[str, Any]) -> str:
        # same wire format as HttpTransport
        self.pushes.append(json.loads(json.dumps(envelope)))
        await self._enter()
        return self.push_response


class SheetBackedTransport:
    """Transport that talks straight to a SheetsClient over a fake spreadsheet."""

    def __init__(self, client: SheetsClient):
        self.client = client
        self.pushes = 0

    async def fetch(self) -> str:
        return json.dumps(self.client.pull_all())

    async def push(self, envelope: Dict[str, Any]) -> str:
        self.pushes += 1
        payload = json.loads(json.dumps(envelope))
        self.client.sync_all(payload["data"])
        return json.dumps({"success": True})


# ---------------------------------------------------------------------------
# fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db(tmp_path: Path):
    database = Database(str(tmp_path / "schedule.db"))
    yield database
    database.close()


@pytest.fixture
def seeded_db(db: Database) -> Database:
    db.bootstrap()
    return db


@pytest.fixture
def repo(seeded_db: Database) -> Repository:
    return Repository(seeded_db)


@pytest.fixture
def spreadsheet() -> FakeSpreadsheet:
    return FakeSpreadsheet()


@pytest.fixture
def sheets_client(spreadsheet: FakeSpreadsheet) -> SheetsClient:
    return SheetsClient(spreadsheet=spreadsheet, tz_name=TZ)


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        database_path=str(tmp_path / "schedule.db"),
        google_sheets_url=SHEETS_URL,
        sync_debounce_ms=50,
        timezone=TZ,
        host="127.0.0.1",
        port=3000,
    )


def add_employees(db: Database, count: int) -> None:
    with db.transaction() as conn:
        for i in range(count):
            conn.execute(
                "INSERT INTO employees(code, name, department, role, phone, password) "
                "VALUES(?,?,?,?,?,?)",
                (f"NV{i}", f"Nhân viên {i}", "Kho", "Nhân viên", "0900000000", ""),
            )
