# shiftsync/sheets/normalizer.py
"""
Chuyển đổi giá trị ô giữa SQLite (có kiểu) và Google Sheets (kiểu lỏng).

Chiều ghi (local -> Sheet): mọi giá trị thành chuỗi, None thành ô trống.
Cột giờ của danh mục ca được giữ dạng văn bản, phần định dạng ô TEXT do
SheetsClient đảm nhận sau khi ghi.

Chiều đọc (Sheet -> local): xem from_remote_cell().
"""
from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta
from typing import AbstractSet, Any, Dict, List, Optional, Sequence

from shiftsync.utils.datetime_utils import format_time_hm, parse_iso_instant, to_iso_instant
from .schema import DATE_COLUMNS, NUMERIC_ID_COLUMNS, TIME_COLUMNS, header_index

_DATE_PREFIX_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_TIME_IN_TIMESTAMP_RE = re.compile(r"T(\d{2}:\d{2})")

# Google Sheets ghi ngày theo giờ VN nên khi xuất ISO sẽ lệch thành 17:00 UTC hôm trước
_TZ_ARTIFACT_MARK = "T17:00:00"
_TZ_ARTIFACT_SHIFT = timedelta(hours=7)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _number_text(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


# -------------------------------------------------------------------------
# Local -> Sheet
# -------------------------------------------------------------------------


def to_remote_cell(column: str, value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return _number_text(value)
    return str(value)


def to_remote_row(columns: Sequence[str], record: Dict[str, Any]) -> List[str]:
    return [to_remote_cell(col, record.get(col)) for col in columns]


# -------------------------------------------------------------------------
# Sheet -> local
# -------------------------------------------------------------------------


def normalize_date(value: Any) -> Any:
    """
    Đưa giá trị ngày về dạng YYYY-MM-DD.

    - chuỗi ISO có 'T' và mang dấu T17:00:00 -> cộng 7 giờ rồi lấy ngày (UTC);
    - chuỗi ISO có 'T' khác -> ngày theo UTC;
    - chuỗi bắt đầu bằng YYYY-MM-DD -> 10 ký tự đầu;
    - còn lại giữ nguyên.
    """
    if not isinstance(value, str):
        return value
    if "T" in value:
        try:
            instant = parse_iso_instant(value)
        except ValueError:
            instant = None
        if instant is not None:
            if _TZ_ARTIFACT_MARK in value:
                instant += _TZ_ARTIFACT_SHIFT
            return instant.date().isoformat()
    if _DATE_PREFIX_RE.match(value):
        return value[:10]
    return value


def normalize_time(value: Any) -> Any:
    """'1899-12-30T08:30:00.000Z' -> '08:30'; giá trị không có 'T' giữ nguyên."""
    if isinstance(value, str) and "T" in value:
        match = _TIME_IN_TIMESTAMP_RE.search(value)
        if match:
            return match.group(1)
    return value


def _coerce_number(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return int(value) if float(value).is_integer() else value
    try:
        number = float(str(value).strip())
    except ValueError:
        return value
    if number != number or number in (float("inf"), float("-inf")):
        return value
    return int(number) if number.is_integer() else number


def from_remote_cell(
    column: str,
    value: Any,
    tz_name: Optional[str] = None,
    time_columns: AbstractSet[str] = TIME_COLUMNS,
) -> Any:
    """
    Chuyển một ô đọc từ Sheet về giá trị cho SQLite.
    Ô trống -> None (người gọi bỏ hẳn trường này khỏi bản ghi).
    """
    if _is_blank(value):
        return None

    if isinstance(value, (datetime, date, time)):
        if column in time_columns:
            if isinstance(value, (datetime, time)):
                return format_time_hm(value)
            return "00:00"
        if isinstance(value, time):
            return format_time_hm(value)
        if not isinstance(value, datetime):
            value = datetime.combine(value, time())
        return to_iso_instant(value, tz_name)

    if column in NUMERIC_ID_COLUMNS:
        return _coerce_number(value)

    if column in DATE_COLUMNS and isinstance(value, str):
        return normalize_date(value)

    if isinstance(value, float):
        return _number_text(value)
    return str(value)


def row_from_remote(
    columns: Sequence[str],
    headers: List[str],
    row: Sequence[Any],
    tz_name: Optional[str] = None,
    time_columns: AbstractSet[str] = TIME_COLUMNS,
) -> Optional[Dict[str, Any]]:
    """
    Dựng bản ghi từ một dòng Sheet theo tên tiêu đề.
    Trả về None nếu dòng không có ô nào có dữ liệu.
    """
    record: Dict[str, Any] = {}
    for column in columns:
        idx = header_index(headers, column)
        if idx is None or idx >= len(row):
            continue
        value = from_remote_cell(column, row[idx], tz_name, time_columns)
        if value is not None:
            record[column] = value
    return record or None
