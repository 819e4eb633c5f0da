# shiftsync/sheets/client.py

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import gspread
from gspread.utils import rowcol_to_a1
from google.oauth2 import service_account

from shiftsync.config import GatewayConfig
from shiftsync.utils.datetime_utils import serial_to_datetime
from .normalizer import row_from_remote, to_remote_row
from .schema import DATE_COLUMNS, TABLES, TIME_COLUMNS, TableSpec

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]

# RAW: Sheets không tự đoán kiểu, "08:30" giữ nguyên là chuỗi
WRITE_INPUT_OPTION = "RAW"
READ_RENDER_OPTION = "UNFORMATTED_VALUE"
READ_DATETIME_OPTION = "SERIAL_NUMBER"
TEXT_FORMAT = {"numberFormat": {"type": "TEXT"}}


class SheetsClient:
    """
    Lớp truy cập Google Sheets cho tám bảng đồng bộ.

    - ghi: xoá sạch trang tính (cả tiêu đề) rồi ghi lại toàn bộ;
    - đọc: tìm cột theo tên tiêu đề, trang tính không tồn tại -> danh sách rỗng.
    """

    def __init__(self, spreadsheet: gspread.Spreadsheet, tz_name: str):
        self.spreadsheet = spreadsheet
        self.tz_name = tz_name

    @classmethod
    def from_config(cls, config: GatewayConfig) -> "SheetsClient":
        if not config.google_service_account_json:
            raise RuntimeError("Service account JSON is empty/not configured")
        if not config.google_sheet_id:
            raise RuntimeError("Spreadsheet ID is empty/not configured")

        info = json.loads(config.google_service_account_json)
        credentials = service_account.Credentials.from_service_account_info(
            info,
            scopes=SCOPES,
        )
        gc = gspread.authorize(credentials)
        spreadsheet = gc.open_by_key(config.google_sheet_id)

        return cls(spreadsheet=spreadsheet, tz_name=config.timezone)

    # -------------------------------------------------------------------------
    # Trang tính
    # -------------------------------------------------------------------------

    def find_worksheet(self, name: str) -> Optional[gspread.Worksheet]:
        wanted = name.lower()
        for ws in self.spreadsheet.worksheets():
            if ws.title.lower() == wanted:
                return ws
        return None

    def _get_or_create(self, spec: TableSpec, rows: int) -> gspread.Worksheet:
        ws = self.find_worksheet(spec.sheet_name)
        if ws is None:
            logger.info("Creating worksheet %s", spec.sheet_name)
            ws = self.spreadsheet.add_worksheet(
                title=spec.sheet_name,
                rows=max(rows, 1),
                cols=len(spec.columns),
            )
        return ws

    # -------------------------------------------------------------------------
    # Ghi
    # -------------------------------------------------------------------------

    def write_table(self, spec: TableSpec, records: Optional[List[Dict[str, Any]]]) -> int:
        """
        Ghi đè toàn bộ trang tính: dòng tiêu đề, sau đó mỗi bản ghi một dòng.
        Trả về số dòng dữ liệu đã ghi.
        """
        records = records or []
        values = [list(spec.columns)]
        values.extend(to_remote_row(spec.columns, r) for r in records)

        ws = self._get_or_create(spec, rows=len(values))
        ws.clear()

        if ws.row_count < len(values) or ws.col_count < len(spec.columns):
            ws.resize(
                rows=max(ws.row_count, len(values)),
                cols=max(ws.col_count, len(spec.columns)),
            )

        ws.update(values=values, range_name="A1", value_input_option=WRITE_INPUT_OPTION)

        if records:
            self._format_time_columns(ws, spec, len(records))

        return len(records)

    def _format_time_columns(self, ws: gspread.Worksheet, spec: TableSpec, count: int) -> None:
        # theo tên cột ở mọi bảng, kể cả Thong_Bao
        for idx, column in enumerate(spec.columns):
            if column not in TIME_COLUMNS:
                continue
            first = rowcol_to_a1(2, idx + 1)
            last = rowcol_to_a1(count + 1, idx + 1)
            ws.format(f"{first}:{last}", TEXT_FORMAT)

    def sync_all(self, data: Dict[str, Any]) -> Dict[str, int]:
        written = {}
        for spec in TABLES:
            written[spec.field] = self.write_table(spec, data.get(spec.field))
        logger.info("Sheets overwritten: %s", written)
        return written

    # -------------------------------------------------------------------------
    # Đọc
    # -------------------------------------------------------------------------

    def read_table(self, spec: TableSpec) -> List[Dict[str, Any]]:
        ws = self.find_worksheet(spec.sheet_name)
        if ws is None:
            return []

        values = ws.get_values(
            value_render_option=READ_RENDER_OPTION,
            date_time_render_option=READ_DATETIME_OPTION,
        )
        if len(values) <= 1:
            return []

        headers = [str(h) for h in values[0]]
        serial_positions = {
            idx for idx, h in enumerate(headers)
            if h.strip().lower() in TIME_COLUMNS | DATE_COLUMNS
        }

        result = []
        for row in values[1:]:
            cells = list(row)
            # Ô ngày/giờ mà Sheets trả về dạng số serial -> datetime
            for idx in serial_positions:
                if idx < len(cells) and _is_number(cells[idx]):
                    cells[idx] = serial_to_datetime(cells[idx])
            record = row_from_remote(
                spec.columns, headers, cells, self.tz_name, spec.time_columns
            )
            if record is not None:
                result.append(record)
        return result

    def pull_all(self) -> Dict[str, List[Dict[str, Any]]]:
        return {spec.field: self.read_table(spec) for spec in TABLES}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
