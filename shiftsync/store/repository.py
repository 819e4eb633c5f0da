# shiftsync/store/repository.py
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from shiftsync.models.entities import (
    ALL_DEPARTMENTS,
    LEAVE_NOTE,
    LEAVE_SCHEDULE_STATUS,
    LEAVE_TASK,
    LeaveStatus,
    TargetType,
)
from shiftsync.utils.datetime_utils import (
    days_between,
    month_key,
    months_between,
    now_iso,
    shift_date,
)
from .database import Database

logger = logging.getLogger(__name__)


class MonthLockedError(Exception):
    """Tháng đã chốt lịch, không được thêm/sửa/xoá lịch làm việc."""

    def __init__(self, month: str):
        super().__init__(f"Tháng {month} đã khóa lịch, không thể sửa")
        self.month = month


def _noop() -> None:
    return None


class Repository:
    """
    Các thao tác ghi trên kho cục bộ.

    Mỗi thao tác thành công sẽ gọi on_change (thường là
    ExportScheduler.schedule_export) để hẹn đẩy dữ liệu lên Sheet.
    Lỗi phía Sheet không bao giờ ảnh hưởng tới lần ghi cục bộ.
    """

    def __init__(self, db: Database, on_change: Optional[Callable[[], None]] = None):
        self.db = db
        self.on_change = on_change or _noop

    def _changed(self) -> None:
        try:
            self.on_change()
        except Exception:
            logger.exception("Failed to schedule export after local change")

    # -------------------------------------------------------------------------
    # Nhân viên
    # -------------------------------------------------------------------------

    def list_employees(self) -> List[Dict[str, Any]]:
        return self.db.fetch_all("SELECT * FROM employees ORDER BY id")

    def get_employee(self, employee_id: int) -> Optional[Dict[str, Any]]:
        return self.db.fetch_one("SELECT * FROM employees WHERE id = ?", (employee_id,))

    def create_employee(self, code: str, name: str, department: str, role: str,
                        phone: Optional[str] = None, password: str = "") -> Dict[str, Any]:
        with self.db.transaction() as conn:
            cur = conn.execute(
                "INSERT INTO employees(code, name, department, role, phone, password) "
                "VALUES(?,?,?,?,?,?)",
                (code, name, department, role, phone, password),
            )
        self._changed()
        return self.get_employee(cur.lastrowid)

    def update_employee(self, employee_id: int, code: str, name: str, department: str,
                        role: str, phone: Optional[str] = None) -> None:
        with self.db.transaction() as conn:
            conn.execute(
                "UPDATE employees SET code = ?, name = ?, department = ?, role = ?, phone = ? "
                "WHERE id = ?",
                (code, name, department, role, phone, employee_id),
            )
        self._changed()

    def delete_employee(self, employee_id: int) -> None:
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM schedules WHERE employee_id = ?", (employee_id,))
            conn.execute("DELETE FROM employees WHERE id = ?", (employee_id,))
        self._changed()

    def change_password(self, employee_id: int, new_password: str) -> None:
        with self.db.transaction() as conn:
            conn.execute(
                "UPDATE employees SET password = ? WHERE id = ?", (new_password, employee_id)
            )
        self._changed()

    # -------------------------------------------------------------------------
    # Danh mục ca
    # -------------------------------------------------------------------------

    def list_shifts(self) -> List[Dict[str, Any]]:
        return self.db.fetch_all("SELECT * FROM shifts ORDER BY id")

    def create_shift(self, name: str, start_time: str, end_time: str,
                     color: Optional[str] = None, text_color: Optional[str] = None,
                     department: Optional[str] = None) -> int:
        with self.db.transaction() as conn:
            cur = conn.execute(
                "INSERT INTO shifts(name, department, start_time, end_time, color, text_color) "
                "VALUES(?,?,?,?,?,?)",
                (name, department or ALL_DEPARTMENTS, start_time, end_time, color, text_color),
            )
        self._changed()
        return cur.lastrowid

    def update_shift(self, shift_id: int, name: str, start_time: str, end_time: str,
                     color: Optional[str] = None, text_color: Optional[str] = None,
                     department: Optional[str] = None) -> None:
        with self.db.transaction() as conn:
            conn.execute(
                "UPDATE shifts SET name = ?, department = ?, start_time = ?, end_time = ?, "
                "color = ?, text_color = ? WHERE id = ?",
                (name, department or ALL_DEPARTMENTS, start_time, end_time,
                 color, text_color, shift_id),
            )
        self._changed()

    def delete_shift(self, shift_id: int) -> None:
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM shifts WHERE id = ?", (shift_id,))
        self._changed()

    # -------------------------------------------------------------------------
    # Lịch làm việc
    # -------------------------------------------------------------------------

    def is_month_locked(self, month: str) -> bool:
        return self.db.fetch_one("SELECT month FROM locked_months WHERE month = ?", (month,)) is not None

    def _check_unlocked(self, *dates: str) -> None:
        for month in sorted({month_key(d) for d in dates if d}):
            if self.is_month_locked(month):
                raise MonthLockedError(month)

    def _check_range_unlocked(self, start: str, end: str) -> None:
        for month in months_between(start, end):
            if self.is_month_locked(month):
                raise MonthLockedError(month)

    def list_schedules(self, start: str, end: str) -> List[Dict[str, Any]]:
        return self.db.fetch_all(
            """
            SELECT s.*, e.name AS employee_name, e.department,
                   sh.name AS shift_name, sh.start_time, sh.end_time, sh.color, sh.text_color
            FROM schedules s
            JOIN employees e ON s.employee_id = e.id
            JOIN shifts sh ON s.shift_id = sh.id
            WHERE s.date >= ? AND s.date <= ?
            ORDER BY s.date, s.employee_id
            """,
            (start, end),
        )

    def find_schedule(self, date_str: str, employee_id: int) -> Optional[Dict[str, Any]]:
        return self.db.fetch_one(
            "SELECT * FROM schedules WHERE date = ? AND employee_id = ?", (date_str, employee_id)
        )

    def _upsert_schedule(self, conn, date_str: str, employee_id: int, shift_id: Any,
                         task: Any, status: Any, note: Optional[str]) -> int:
        # Duy nhất theo (date, employee_id): tra trước rồi mới thêm hoặc sửa
        existing = conn.execute(
            "SELECT id FROM schedules WHERE date = ? AND employee_id = ?", (date_str, employee_id)
        ).fetchone()
        if existing:
            conn.execute(
                "UPDATE schedules SET shift_id = ?, task = ?, status = ?, note = ? WHERE id = ?",
                (shift_id, task, status, note or "", existing["id"]),
            )
            return existing["id"]
        cur = conn.execute(
            "INSERT INTO schedules(date, employee_id, shift_id, task, status, note) "
            "VALUES(?,?,?,?,?,?)",
            (date_str, employee_id, shift_id, task, status, note or ""),
        )
        return cur.lastrowid

    def upsert_schedule(self, date: str, employee_id: int, shift_id: int,
                        task: Optional[str] = None, status: Optional[str] = None,
                        note: Optional[str] = None) -> int:
        self._check_unlocked(date)
        with self.db.transaction() as conn:
            schedule_id = self._upsert_schedule(conn, date, employee_id, shift_id, task, status, note)
        self._changed()
        return schedule_id

    def bulk_upsert_schedules(self, schedules: Iterable[Dict[str, Any]]) -> int:
        schedules = list(schedules)
        self._check_unlocked(*(s["date"] for s in schedules))
        count = 0
        with self.db.transaction() as conn:
            for s in schedules:
                self._upsert_schedule(
                    conn, s["date"], s["employee_id"], s.get("shift_id"),
                    s.get("task"), s.get("status"), s.get("note"),
                )
                count += 1
        self._changed()
        return count

    def copy_week(self, from_start: str, to_start: str) -> int:
        """Chép lịch 7 ngày kể từ from_start sang tuần bắt đầu từ to_start."""
        offset = days_between(from_start, to_start)
        source = self.db.fetch_all(
            "SELECT * FROM schedules WHERE date >= ? AND date <= date(?, '+6 days')",
            (from_start, from_start),
        )
        self._check_unlocked(*(shift_date(s["date"], offset) for s in source))
        with self.db.transaction() as conn:
            for s in source:
                self._upsert_schedule(
                    conn, shift_date(s["date"], offset), s["employee_id"], s["shift_id"],
                    s["task"], s["status"], s["note"],
                )
        self._changed()
        return len(source)

    def delete_schedule(self, schedule_id: int) -> None:
        row = self.db.fetch_one("SELECT date FROM schedules WHERE id = ?", (schedule_id,))
        if row is not None:
            self._check_unlocked(row["date"])
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM schedules WHERE id = ?", (schedule_id,))
        self._changed()

    def delete_schedules_between(self, start: str, end: str,
                                 department: Optional[str] = None) -> int:
        self._check_range_unlocked(start, end)
        with self.db.transaction() as conn:
            if department:
                cur = conn.execute(
                    "DELETE FROM schedules WHERE date >= ? AND date <= ? "
                    "AND employee_id IN (SELECT id FROM employees WHERE department = ?)",
                    (start, end, department),
                )
            else:
                cur = conn.execute(
                    "DELETE FROM schedules WHERE date >= ? AND date <= ?", (start, end)
                )
        self._changed()
        return cur.rowcount

    # -------------------------------------------------------------------------
    # Chốt tháng
    # -------------------------------------------------------------------------

    def list_locked_months(self) -> List[str]:
        return [r["month"] for r in self.db.fetch_all("SELECT month FROM locked_months ORDER BY month")]

    def set_month_locked(self, month: str, locked: bool) -> None:
        with self.db.transaction() as conn:
            if locked:
                conn.execute("INSERT OR IGNORE INTO locked_months(month) VALUES(?)", (month,))
            else:
                conn.execute("DELETE FROM locked_months WHERE month = ?", (month,))
        self._changed()

    # -------------------------------------------------------------------------
    # Thông báo
    # -------------------------------------------------------------------------

    def list_announcements(self) -> List[Dict[str, Any]]:
        return self.db.fetch_all(
            """
            SELECT a.*, e.name AS creator_name
            FROM announcements a
            JOIN employees e ON a.created_by = e.id
            ORDER BY a.created_at DESC
            """
        )

    def active_announcements_for(self, employee_id: int, department: str,
                                 at: Optional[str] = None) -> List[Dict[str, Any]]:
        at = at or now_iso()
        return self.db.fetch_all(
            """
            SELECT a.*, e.name AS creator_name, v.viewed_at
            FROM announcements a
            JOIN employees e ON a.created_by = e.id
            LEFT JOIN announcement_views v ON a.id = v.announcement_id AND v.employee_id = ?
            WHERE a.start_time <= ? AND a.end_time >= ?
            AND (
                a.target_type = ?
                OR (a.target_type = ? AND (',' || a.target_value || ',') LIKE ('%,' || ? || ',%'))
                OR (a.target_type = ? AND (',' || a.target_value || ',') LIKE ('%,' || ? || ',%'))
            )
            """,
            (
                employee_id, at, at,
                TargetType.ALL.value,
                TargetType.DEPARTMENT.value, department,
                TargetType.INDIVIDUAL.value, str(employee_id),
            ),
        )

    def create_announcement(self, type: str, target_type: str, target_value: Optional[str],
                            message: str, start_time: str, end_time: str,
                            created_by: int) -> int:
        with self.db.transaction() as conn:
            cur = conn.execute(
                "INSERT INTO announcements(type, target_type, target_value, message, "
                "start_time, end_time, created_by, created_at) VALUES(?,?,?,?,?,?,?,?)",
                (type, target_type, target_value, message, start_time, end_time,
                 created_by, now_iso()),
            )
        self._changed()
        return cur.lastrowid

    def update_announcement(self, announcement_id: int, type: str, target_type: str,
                            target_value: Optional[str], message: str,
                            start_time: str, end_time: str) -> None:
        with self.db.transaction() as conn:
            conn.execute(
                "UPDATE announcements SET type = ?, target_type = ?, target_value = ?, "
                "message = ?, start_time = ?, end_time = ? WHERE id = ?",
                (type, target_type, target_value, message, start_time, end_time, announcement_id),
            )
        self._changed()

    def delete_announcement(self, announcement_id: int) -> None:
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM announcements WHERE id = ?", (announcement_id,))
        self._changed()

    def record_view(self, announcement_id: int, employee_id: int) -> None:
        with self.db.transaction() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO announcement_views(announcement_id, employee_id, viewed_at) "
                "VALUES(?,?,?)",
                (announcement_id, employee_id, now_iso()),
            )
        self._changed()

    def list_views(self, announcement_id: int) -> List[Dict[str, Any]]:
        return self.db.fetch_all(
            """
            SELECT e.id, e.name, e.code, e.department, v.viewed_at
            FROM employees e
            LEFT JOIN announcement_views v ON e.id = v.employee_id AND v.announcement_id = ?
            ORDER BY e.id
            """,
            (announcement_id,),
        )

    # -------------------------------------------------------------------------
    # Đơn nghỉ phép
    # -------------------------------------------------------------------------

    def list_leave_requests(self) -> List[Dict[str, Any]]:
        return self.db.fetch_all(
            """
            SELECT lr.*, e.name AS employee_name, e.department, s.name AS shift_name
            FROM leave_requests lr
            JOIN employees e ON lr.employee_id = e.id
            JOIN shifts s ON lr.shift_id = s.id
            ORDER BY lr.created_at DESC
            """
        )

    def get_leave_request(self, request_id: int) -> Optional[Dict[str, Any]]:
        return self.db.fetch_one("SELECT * FROM leave_requests WHERE id = ?", (request_id,))

    def create_leave_request(self, employee_id: int, date: str, shift_id: int,
                             reason: Optional[str] = None) -> int:
        with self.db.transaction() as conn:
            cur = conn.execute(
                "INSERT INTO leave_requests(employee_id, date, shift_id, reason, status, created_at) "
                "VALUES(?,?,?,?,?,?)",
                (employee_id, date, shift_id, reason, LeaveStatus.PENDING.value, now_iso()),
            )
        self._changed()
        return cur.lastrowid

    def set_leave_status(self, request_id: int, status: str) -> None:
        """
        Đổi trạng thái đơn.
        Đã duyệt -> tạo/ghi đè lịch ngày đó với ghi chú nghỉ phép.
        Từ chối -> xoá lịch mang ghi chú nghỉ phép của ngày đó.
        """
        req = self.get_leave_request(request_id)
        if req is not None and status in (LeaveStatus.APPROVED.value, LeaveStatus.REJECTED.value):
            self._check_unlocked(req["date"])
        with self.db.transaction() as conn:
            conn.execute("UPDATE leave_requests SET status = ? WHERE id = ?", (status, request_id))
            if req is not None:
                if status == LeaveStatus.APPROVED.value:
                    self._upsert_schedule(
                        conn, req["date"], req["employee_id"], req["shift_id"],
                        LEAVE_TASK, LEAVE_SCHEDULE_STATUS, LEAVE_NOTE,
                    )
                elif status == LeaveStatus.REJECTED.value:
                    _delete_leave_schedule(conn, req["date"], req["employee_id"])
        self._changed()

    def delete_leave_request(self, request_id: int) -> None:
        req = self.get_leave_request(request_id)
        if req is None:
            raise LookupError(f"Leave request {request_id} not found")
        if req["status"] == LeaveStatus.APPROVED.value:
            self._check_unlocked(req["date"])
        with self.db.transaction() as conn:
            if req["status"] == LeaveStatus.APPROVED.value:
                _delete_leave_schedule(conn, req["date"], req["employee_id"])
            conn.execute("DELETE FROM leave_requests WHERE id = ?", (request_id,))
        self._changed()

    # -------------------------------------------------------------------------
    # Nhiệm vụ
    # -------------------------------------------------------------------------

    def list_tasks(self, department: Optional[str] = None) -> List[Dict[str, Any]]:
        if department and department != ALL_DEPARTMENTS:
            return self.db.fetch_all(
                "SELECT * FROM tasks WHERE department = ? OR department = ? ORDER BY id",
                (department, ALL_DEPARTMENTS),
            )
        return self.db.fetch_all("SELECT * FROM tasks ORDER BY id")

    def create_task(self, department: str, name: str,
                    color: Optional[str] = None, text_color: Optional[str] = None) -> int:
        with self.db.transaction() as conn:
            cur = conn.execute(
                "INSERT INTO tasks(department, name, color, text_color) VALUES(?,?,?,?)",
                (department, name, color, text_color),
            )
        self._changed()
        return cur.lastrowid

    def delete_task(self, task_id: int) -> None:
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        self._changed()


def _delete_leave_schedule(conn, date_str: str, employee_id: int) -> None:
    conn.execute(
        "DELETE FROM schedules WHERE date = ? AND employee_id = ? AND note = ?",
        (date_str, employee_id, LEAVE_NOTE),
    )
