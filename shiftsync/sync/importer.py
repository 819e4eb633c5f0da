# shiftsync/sync/importer.py
"""
Tải dữ liệu từ Google Sheets và thay thế toàn bộ kho cục bộ.

Thứ tự: tải -> parse JSON -> kiểm tra cấu trúc -> chốt an toàn -> một giao dịch
thay thế -> seed nhiệm vụ. Mọi lỗi được trả về dạng SyncResult, không ném ra ngoài.
"""
from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Dict, List

from shiftsync.models.entities import ALL_DEPARTMENTS, FALLBACK_ADMIN_PASSWORD, Role, normalize_role
from shiftsync.sheets.normalizer import normalize_date, normalize_time
from shiftsync.store.database import Database, insert_default_admin
from .errors import (
    ConnectivityFailure,
    DestructiveOverwriteBlocked,
    InvalidPayloadShape,
    MalformedRemoteResponse,
    SyncError,
    SyncResult,
    TransactionFailure,
)

logger = logging.getLogger(__name__)

EXCERPT_LENGTH = 100

# Các bảng luôn bị xoá trước khi nạp lại; tasks chỉ xoá khi Sheet có dữ liệu
_WIPED_TABLES = ("employees", "shifts", "schedules", "locked_months", "announcements", "leave_requests")


def parse_pull_response(text: str) -> Dict[str, Any]:
    try:
        data = json.loads(text)
    except ValueError:
        logger.error("Google Sheets returned non-JSON body: %s...", text[:200])
        raise MalformedRemoteResponse(
            "URL trả về không phải dữ liệu JSON hợp lệ. "
            "Hãy kiểm tra lại bước Triển khai (Deploy) trong Apps Script.",
            details=text[:EXCERPT_LENGTH],
        ) from None
    if not isinstance(data, dict) or not isinstance(data.get("employees"), list):
        raise InvalidPayloadShape("Dữ liệu từ Google Sheets không hợp lệ hoặc thiếu bảng Nhan_Vien")
    return data


def _rows(data: Dict[str, Any], name: str) -> List[Dict[str, Any]]:
    items = data.get(name)
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


class ImportPipeline:
    def __init__(self, db: Database, transport):
        self.db = db
        self.transport = transport

    async def run(self) -> SyncResult:
        try:
            logger.info("Fetching data from Google Sheets...")
            text = await self.transport.fetch()
            data = parse_pull_response(text)

            employees = _rows(data, "employees")
            schedules = _rows(data, "schedules")
            logger.info(
                "Sheet data received: %d employees, %d schedules.", len(employees), len(schedules)
            )

            local_count = self.db.count("employees")
            if not employees and local_count > 0:
                logger.warning("Import blocked: remote employees empty, local has %d", local_count)
                raise DestructiveOverwriteBlocked(
                    "Dữ liệu nhân viên từ Google Sheets trống. "
                    "Hệ thống đã chặn việc xóa dữ liệu cục bộ để bảo vệ an toàn."
                )

            self.replace_local(data)
            try:
                self.db.seed_tasks()
            except sqlite3.Error as exc:
                raise TransactionFailure(f"Lỗi khi bổ sung nhiệm vụ mặc định: {exc}") from exc
        except SyncError as exc:
            logger.error("Import from Google Sheets failed: %s", exc.message)
            return SyncResult.failed(exc)
        except Exception as exc:
            logger.exception("Failed to load from Google Sheets")
            return SyncResult.failed(ConnectivityFailure(f"Lỗi kết nối máy chủ Google: {exc}"))

        return SyncResult.ok(
            "Đồng bộ dữ liệu thành công",
            employees=len(employees),
            schedules=len(schedules),
        )

    # -------------------------------------------------------------------------
    # Thay thế dữ liệu cục bộ
    # -------------------------------------------------------------------------

    def replace_local(self, data: Dict[str, Any]) -> None:
        """Xoá và nạp lại trong một giao dịch; lỗi giữa chừng -> rollback toàn bộ."""
        tasks = _rows(data, "tasks")
        try:
            with self.db.transaction() as conn:
                logger.info("Wiping local data and replacing with Sheet data...")
                for table in _WIPED_TABLES:
                    conn.execute(f"DELETE FROM {table}")
                if tasks:
                    conn.execute("DELETE FROM tasks")

                self._insert_employees(conn, _rows(data, "employees"))
                self._insert_shifts(conn, _rows(data, "shifts"))
                self._insert_schedules(conn, _rows(data, "schedules"))
                self._insert_locked_months(conn, _rows(data, "lockedMonths"))
                self._insert_announcements(conn, _rows(data, "announcements"))
                self._replace_views(conn, _rows(data, "announcementViews"))
                self._insert_leave_requests(conn, _rows(data, "leaveRequests"))
                if tasks:
                    self._insert_tasks(conn, tasks)
        except sqlite3.Error as exc:
            raise TransactionFailure(f"Lỗi khi ghi dữ liệu từ Google Sheets: {exc}") from exc

    def _insert_employees(self, conn: sqlite3.Connection, employees: List[Dict[str, Any]]) -> None:
        if not employees:
            logger.info("Sheet has no employees, adding default Admin.")
            insert_default_admin(conn)
            return

        has_admin = False
        for e in employees:
            role = normalize_role(e.get("role"))
            password = "" if e.get("password") is None else str(e["password"])
            if role is Role.ADMIN:
                has_admin = True
                if not password:
                    password = FALLBACK_ADMIN_PASSWORD
            conn.execute(
                "INSERT OR REPLACE INTO employees(id, code, name, department, role, phone, password) "
                "VALUES(?,?,?,?,?,?,?)",
                (e.get("id"), e.get("code"), e.get("name"), e.get("department"),
                 role.value, e.get("phone"), password),
            )

        if not has_admin:
            logger.info("No Admin found in Sheet, adding default Admin.")
            insert_default_admin(conn)

    def _insert_shifts(self, conn: sqlite3.Connection, shifts: List[Dict[str, Any]]) -> None:
        for s in shifts:
            conn.execute(
                "INSERT OR REPLACE INTO shifts(id, name, department, start_time, end_time, color, text_color) "
                "VALUES(?,?,?,?,?,?,?)",
                (s.get("id"), s.get("name"), s.get("department") or ALL_DEPARTMENTS,
                 normalize_time(s.get("start_time")), normalize_time(s.get("end_time")),
                 s.get("color"), s.get("text_color")),
            )

    def _insert_schedules(self, conn: sqlite3.Connection, schedules: List[Dict[str, Any]]) -> None:
        # Dòng có id -> ghi đè theo id; dòng không id -> luôn thêm mới.
        # Không khử trùng (date, employee_id) ở đây.
        for s in schedules:
            values = (
                normalize_date(s.get("date")), s.get("employee_id"), s.get("shift_id"),
                s.get("task"), s.get("status"), s.get("note"),
            )
            if s.get("id"):
                conn.execute(
                    "INSERT OR REPLACE INTO schedules(id, date, employee_id, shift_id, task, status, note) "
                    "VALUES(?,?,?,?,?,?,?)",
                    (s["id"],) + values,
                )
            else:
                conn.execute(
                    "INSERT INTO schedules(date, employee_id, shift_id, task, status, note) "
                    "VALUES(?,?,?,?,?,?)",
                    values,
                )

    def _insert_locked_months(self, conn: sqlite3.Connection, months: List[Dict[str, Any]]) -> None:
        for m in months:
            if m.get("month"):
                conn.execute("INSERT OR IGNORE INTO locked_months(month) VALUES(?)", (str(m["month"]),))

    def _insert_announcements(self, conn: sqlite3.Connection, items: List[Dict[str, Any]]) -> None:
        for a in items:
            conn.execute(
                "INSERT INTO announcements(id, type, target_type, target_value, message, "
                "start_time, end_time, created_by, created_at) VALUES(?,?,?,?,?,?,?,?,?)",
                (a.get("id"), a.get("type"), a.get("target_type"), a.get("target_value"),
                 a.get("message"), a.get("start_time"), a.get("end_time"),
                 a.get("created_by"), a.get("created_at")),
            )

    def _replace_views(self, conn: sqlite3.Connection, views: List[Dict[str, Any]]) -> None:
        # Lượt xem lấy hoàn toàn theo Sheet, lượt xem chỉ có ở local sẽ mất
        conn.execute("DELETE FROM announcement_views")
        for v in views:
            conn.execute(
                "INSERT OR IGNORE INTO announcement_views(announcement_id, employee_id, viewed_at) "
                "VALUES(?,?,?)",
                (v.get("announcement_id"), v.get("employee_id"), v.get("viewed_at")),
            )

    def _insert_leave_requests(self, conn: sqlite3.Connection, items: List[Dict[str, Any]]) -> None:
        for r in items:
            conn.execute(
                "INSERT INTO leave_requests(id, employee_id, date, shift_id, reason, status, created_at) "
                "VALUES(?,?,?,?,?,?,?)",
                (r.get("id"), r.get("employee_id"), normalize_date(r.get("date")), r.get("shift_id"),
                 r.get("reason"), r.get("status"), r.get("created_at")),
            )

    def _insert_tasks(self, conn: sqlite3.Connection, tasks: List[Dict[str, Any]]) -> None:
        for t in tasks:
            conn.execute(
                "INSERT INTO tasks(id, department, name, color, text_color) VALUES(?,?,?,?,?)",
                (t.get("id"), t.get("department"), t.get("name"), t.get("color"), t.get("text_color")),
            )
