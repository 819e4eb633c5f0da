# shiftsync/store/database.py
from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

from shiftsync.models.entities import (
    DEFAULT_ADMIN,
    DEFAULT_SHIFTS,
    FALLBACK_ADMIN_PASSWORD,
    SEED_TASKS,
    Role,
)
from shiftsync.sheets.schema import TABLES

logger = logging.getLogger(__name__)

SHEETS_URL_SETTING = "GOOGLE_SHEETS_URL"

SCHEMA = """
CREATE TABLE IF NOT EXISTS employees(
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    code TEXT UNIQUE,
    name TEXT,
    department TEXT,
    role TEXT,
    phone TEXT,
    password TEXT
);
CREATE TABLE IF NOT EXISTS shifts(
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT,
    department TEXT DEFAULT 'All',
    start_time TEXT,             -- HH:mm
    end_time TEXT,               -- HH:mm
    color TEXT,
    text_color TEXT
);
CREATE TABLE IF NOT EXISTS schedules(
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    date TEXT,                   -- YYYY-MM-DD
    employee_id INTEGER,
    shift_id INTEGER,
    task TEXT,
    status TEXT,
    note TEXT
);
CREATE INDEX IF NOT EXISTS ix_schedules_date_emp ON schedules(date, employee_id);
CREATE TABLE IF NOT EXISTS locked_months(
    month TEXT PRIMARY KEY       -- YYYY-MM
);
CREATE TABLE IF NOT EXISTS announcements(
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    type TEXT,
    target_type TEXT,            -- All | Department | Individual
    target_value TEXT,
    message TEXT,
    start_time TEXT,
    end_time TEXT,
    created_by INTEGER,
    created_at TEXT
);
CREATE TABLE IF NOT EXISTS announcement_views(
    announcement_id INTEGER,
    employee_id INTEGER,
    viewed_at TEXT,
    PRIMARY KEY(announcement_id, employee_id)
);
CREATE TABLE IF NOT EXISTS settings(
    key TEXT PRIMARY KEY,
    value TEXT
);
CREATE TABLE IF NOT EXISTS leave_requests(
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    employee_id INTEGER,
    date TEXT,
    shift_id INTEGER,
    reason TEXT,
    status TEXT,
    created_at TEXT
);
CREATE TABLE IF NOT EXISTS tasks(
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    department TEXT,
    name TEXT,
    color TEXT,
    text_color TEXT
);
"""


class Database:
    """Kho dữ liệu cục bộ (SQLite)."""

    def __init__(self, db_path: str = "schedule.db"):
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Tất cả hoặc không: lỗi bên trong khối sẽ rollback toàn bộ."""
        with self.conn:
            yield self.conn

    # --- truy vấn ---
    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        return [dict(r) for r in self.conn.execute(sql, params).fetchall()]

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        row = self.conn.execute(sql, params).fetchone()
        return dict(row) if row is not None else None

    def count(self, table: str) -> int:
        return self.conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    def snapshot(self) -> Dict[str, List[Dict[str, Any]]]:
        """Toàn bộ tám bảng, khoá theo tên trường trong payload đồng bộ."""
        data = {}
        for spec in TABLES:
            cols = ", ".join(spec.columns)
            data[spec.field] = self.fetch_all(f"SELECT {cols} FROM {spec.local_table}")
        return data

    # --- settings ---
    def get_setting(self, key: str) -> Optional[str]:
        row = self.fetch_one("SELECT value FROM settings WHERE key = ?", (key,))
        return row["value"] if row else None

    def set_setting(self, key: str, value: Optional[str]) -> None:
        with self.conn:
            self.conn.execute(
                "INSERT OR REPLACE INTO settings(key, value) VALUES(?, ?)", (key, value)
            )

    def list_settings(self) -> List[Dict[str, Any]]:
        return self.fetch_all("SELECT key, value FROM settings ORDER BY key")

    # --- khởi tạo dữ liệu ---
    def bootstrap(self) -> None:
        """Dữ liệu mặc định khi khởi động: admin, danh mục ca, nhiệm vụ."""
        with self.conn:
            if self.count("employees") == 0:
                logger.info("Empty database, seeding default admin and shifts")
                insert_default_admin(self.conn)
                self.conn.executemany(
                    "INSERT INTO shifts(name, department, start_time, end_time, color, text_color) "
                    "VALUES(?,?,?,?,?,?)",
                    [
                        (s.name, s.department, s.start_time, s.end_time, s.color, s.text_color)
                        for s in DEFAULT_SHIFTS
                    ],
                )
            self.conn.execute(
                "UPDATE employees SET password = ? "
                "WHERE role = ? AND (password IS NULL OR password = '')",
                (FALLBACK_ADMIN_PASSWORD, Role.ADMIN.value),
            )
        self.seed_tasks()

    def seed_tasks(self) -> int:
        """
        Thêm các nhiệm vụ mặc định nếu chưa có (so khớp department + name,
        không phân biệt hoa thường, bỏ khoảng trắng). Trả về số dòng đã thêm.
        """
        added = 0
        with self.conn:
            # LOWER() của SQLite chỉ xử lý ASCII, "BÁN HÀNG" phải khớp "Bán hàng"
            existing = {
                _task_key(r["department"], r["name"])
                for r in self.conn.execute("SELECT department, name FROM tasks")
            }
            for task in SEED_TASKS:
                key = _task_key(task.department, task.name)
                if key in existing:
                    continue
                existing.add(key)
                self.conn.execute(
                    "INSERT INTO tasks(department, name, color, text_color) VALUES(?,?,?,?)",
                    (task.department, task.name, task.color, task.text_color),
                )
                added += 1
        return added


def _task_key(department: Optional[str], name: Optional[str]) -> tuple:
    return ((department or "").strip().casefold(), (name or "").strip().casefold())


def insert_default_admin(conn: sqlite3.Connection) -> None:
    a = DEFAULT_ADMIN
    conn.execute(
        "INSERT INTO employees(code, name, department, role, phone, password) VALUES(?,?,?,?,?,?)",
        (a.code, a.name, a.department, a.role.value, a.phone, a.password),
    )
