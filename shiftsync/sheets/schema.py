# shiftsync/sheets/schema.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Tuple

TIME_COLUMNS = frozenset({"start_time", "end_time"})
DATE_COLUMNS = frozenset({"date"})
NUMERIC_ID_COLUMNS = frozenset({"id", "employee_id", "shift_id", "created_by", "announcement_id"})


@dataclass(frozen=True)
class TableSpec:
    """Hợp đồng cố định giữa một tập bản ghi và một trang tính."""

    field: str        # tên trường trong payload JSON
    sheet_name: str   # tên trang tính trên Google Sheets
    local_table: str  # tên bảng SQLite
    columns: Tuple[str, ...]
    # cột đọc về dạng giờ HH:mm
    time_columns: FrozenSet[str] = frozenset()


TABLES: Tuple[TableSpec, ...] = (
    TableSpec(
        "employees", "Nhan_Vien", "employees",
        ("id", "code", "name", "department", "role", "phone", "password"),
    ),
    TableSpec(
        "shifts", "DanhMuc_Ca", "shifts",
        ("id", "name", "department", "start_time", "end_time", "color", "text_color"),
        time_columns=TIME_COLUMNS,
    ),
    TableSpec(
        "schedules", "Lich_Lam_Viec", "schedules",
        ("id", "date", "employee_id", "shift_id", "task", "status", "note"),
    ),
    TableSpec(
        "lockedMonths", "Thang_Chot", "locked_months",
        ("month",),
    ),
    TableSpec(
        "announcements", "Thong_Bao", "announcements",
        (
            "id", "type", "target_type", "target_value", "message",
            "start_time", "end_time", "created_by", "created_at",
        ),
    ),
    TableSpec(
        "announcementViews", "Xac_Nhan_Thong_Bao", "announcement_views",
        ("announcement_id", "employee_id", "viewed_at"),
    ),
    TableSpec(
        "leaveRequests", "Don_Xin_Nghi", "leave_requests",
        ("id", "employee_id", "date", "shift_id", "reason", "status", "created_at"),
    ),
    TableSpec(
        "tasks", "DanhMuc_NhiemVu", "tasks",
        ("id", "department", "name", "color", "text_color"),
    ),
)

TABLES_BY_FIELD: Dict[str, TableSpec] = {t.field: t for t in TABLES}

PAYLOAD_FIELDS: List[str] = [t.field for t in TABLES]

SYNC_ACTION = "sync_all"


def header_index(headers: List[str], column: str) -> Optional[int]:
    """
    Vị trí cột theo tên tiêu đề (không phân biệt hoa thường, bỏ khoảng trắng).
    Không có cột -> None, trường đó sẽ bị bỏ qua khi đọc.
    """
    wanted = column.lower()
    for idx, header in enumerate(headers):
        if str(header).strip().lower() == wanted:
            return idx
    return None
