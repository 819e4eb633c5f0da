import sqlite3

import aiohttp
import pytest

from conftest import FakeTransport, add_employees

from shiftsync.models.entities import FALLBACK_ADMIN_PASSWORD
from shiftsync.sync.errors import ConnectivityFailure, SyncFailureKind
from shiftsync.sync.importer import ImportPipeline


def _payload(**overrides):
    data = {
        "employees": [
            {"id": 1, "code": "ADMIN", "name": "Quản trị viên", "department": "Quản lý",
             "role": "Admin", "phone": "0999999999", "password": "abcd"},
            {"id": 2, "code": "NV01", "name": "An", "department": "Bán hàng",
             "role": "Nhân viên", "phone": "0901", "password": ""},
        ],
        "shifts": [{"id": 1, "name": "Ca sáng", "start_time": "08:00", "end_time": "12:00"}],
        "schedules": [
            {"id": 10, "date": "2024-03-10", "employee_id": 2, "shift_id": 1, "status": "Published"},
        ],
        "lockedMonths": [],
        "announcements": [],
        "announcementViews": [],
        "leaveRequests": [],
        "tasks": [],
    }
    data.update(overrides)
    return data


async def _run(db, payload):
    return await ImportPipeline(db, FakeTransport(pull=payload)).run()


class TestSafetyGate:
    async def test_empty_remote_employees_blocked_when_local_has_data(self, db):
        add_employees(db, 3)

        result = await _run(db, _payload(employees=[], schedules=[]))

        assert not result.success
        assert result.kind is SyncFailureKind.DESTRUCTIVE_OVERWRITE_BLOCKED
        assert db.count("employees") == 3

    async def test_empty_remote_allowed_on_empty_local(self, db):
        result = await _run(db, _payload(employees=[], schedules=[], shifts=[]))

        assert result.success
        employees = db.fetch_all("SELECT * FROM employees")
        assert [e["code"] for e in employees] == ["ADMIN"]
        assert employees[0]["password"] == FALLBACK_ADMIN_PASSWORD


class TestReplace:
    async def test_local_tables_match_remote(self, seeded_db):
        add_employees(seeded_db, 4)

        result = await _run(seeded_db, _payload())

        assert result.success
        assert (result.employees, result.schedules) == (2, 1)
        assert [e["code"] for e in seeded_db.fetch_all("SELECT code FROM employees ORDER BY id")] == [
            "ADMIN", "NV01",
        ]
        assert seeded_db.fetch_all("SELECT id, date FROM schedules") == [{"id": 10, "date": "2024-03-10"}]

    async def test_lowercase_admin_role_normalised(self, seeded_db):
        tasks_before = seeded_db.fetch_all("SELECT * FROM tasks ORDER BY id")
        employees = [{"id": 5, "code": "BOSS", "name": "Sếp", "role": "admin", "password": ""}]

        result = await _run(seeded_db, _payload(employees=employees, schedules=[]))

        assert result.success
        rows = seeded_db.fetch_all("SELECT code, role, password FROM employees")
        assert rows == [{"code": "BOSS", "role": "Admin", "password": FALLBACK_ADMIN_PASSWORD}]
        # Sheet không có nhiệm vụ -> giữ nguyên danh mục cục bộ
        assert seeded_db.fetch_all("SELECT * FROM tasks ORDER BY id") == tasks_before

    async def test_default_admin_added_when_sheet_has_none(self, db):
        employees = [{"id": 7, "code": "NV07", "name": "Bình", "role": "Nhân viên"}]

        await _run(db, _payload(employees=employees, schedules=[]))

        codes = {e["code"]: e for e in db.fetch_all("SELECT * FROM employees")}
        assert set(codes) == {"NV07", "ADMIN"}
        assert codes["ADMIN"]["role"] == "Admin"
        assert codes["ADMIN"]["password"] == "1234"

    @pytest.mark.parametrize(
        "raw, expected",
        [("ADMIN", "Admin"), ("tổ trưởng", "Tổ trưởng"), (" Tổ trưởng ", "Tổ trưởng"),
         ("Quản lý", "Nhân viên"), ("", "Nhân viên"), (None, "Nhân viên")],
    )
    async def test_role_normalisation(self, db, raw, expected):
        employees = [
            {"id": 1, "code": "ADMIN", "role": "Admin", "password": "x"},
            {"id": 2, "code": "E", "role": raw},
        ]
        await _run(db, _payload(employees=employees, schedules=[]))
        assert db.fetch_one("SELECT role FROM employees WHERE id = 2")["role"] == expected

    async def test_shift_timestamps_reduced_to_clock(self, db):
        shifts = [{"id": 3, "name": "Ca tối", "start_time": "1899-12-30T18:00:00.000Z",
                   "end_time": "22:00"}]

        await _run(db, _payload(shifts=shifts))

        row = db.fetch_one("SELECT * FROM shifts WHERE id = 3")
        assert (row["start_time"], row["end_time"], row["department"]) == ("18:00", "22:00", "All")

    async def test_schedule_dates_normalised(self, db):
        schedules = [
            {"id": 1, "date": "2024-03-10T17:00:00.000Z", "employee_id": 2, "shift_id": 1},
            {"id": 2, "date": "2024-03-12T03:00:00.000Z", "employee_id": 2, "shift_id": 1},
        ]
        await _run(db, _payload(schedules=schedules))
        dates = [r["date"] for r in db.fetch_all("SELECT date FROM schedules ORDER BY id")]
        assert dates == ["2024-03-11", "2024-03-12"]

    async def test_duplicate_day_rows_kept(self, db):
        schedules = [
            {"id": 1, "date": "2024-03-10", "employee_id": 2, "shift_id": 1},
            {"date": "2024-03-10", "employee_id": 2, "shift_id": 1},
        ]
        result = await _run(db, _payload(schedules=schedules))
        assert result.success
        assert db.count("schedules") == 2

    async def test_views_replaced_wholesale(self, seeded_db):
        seeded_db.conn.execute(
            "INSERT INTO announcement_views VALUES(99, 1, '2024-01-01T00:00:00.000Z')"
        )
        seeded_db.conn.commit()
        views = [{"announcement_id": 1, "employee_id": 2, "viewed_at": "2024-03-10T01:00:00.000Z"}]

        await _run(seeded_db, _payload(announcementViews=views))

        assert seeded_db.fetch_all("SELECT announcement_id, employee_id FROM announcement_views") == [
            {"announcement_id": 1, "employee_id": 2}
        ]

    async def test_remote_tasks_replace_local_and_seeds_refilled(self, seeded_db):
        tasks = [{"id": 1, "department": "Kho", "name": "Kiểm kê", "color": "#000"}]

        await _run(seeded_db, _payload(tasks=tasks))

        names = {t["name"] for t in seeded_db.fetch_all("SELECT name FROM tasks")}
        assert names == {"Kiểm kê", "Trực hotline", "Trực cửa", "Vệ sinh"}

    async def test_locked_months_and_leave_requests(self, db):
        await _run(db, _payload(
            lockedMonths=[{"month": "2024-02"}, {"month": ""}],
            leaveRequests=[{"id": 4, "employee_id": 2, "date": "2024-03-11", "shift_id": 1,
                            "reason": "ốm", "status": "Chờ duyệt"}],
        ))
        assert [m["month"] for m in db.fetch_all("SELECT month FROM locked_months")] == ["2024-02"]
        assert db.fetch_one("SELECT status FROM leave_requests WHERE id = 4")["status"] == "Chờ duyệt"

    async def test_leave_request_dates_normalised(self, db):
        await _run(db, _payload(
            leaveRequests=[{"id": 4, "employee_id": 2, "date": "2024-03-10T17:00:00.000Z",
                            "shift_id": 1, "status": "Chờ duyệt"}],
        ))
        assert db.fetch_one("SELECT date FROM leave_requests WHERE id = 4")["date"] == "2024-03-11"

    async def test_uppercase_remote_task_not_seeded_twice(self, seeded_db):
        tasks = [{"id": 1, "department": "BÁN HÀNG", "name": "TRỰC CỬA"}]

        await _run(seeded_db, _payload(tasks=tasks))

        names = [t["name"] for t in seeded_db.fetch_all("SELECT name FROM tasks ORDER BY id")]
        assert names == ["TRỰC CỬA", "Trực hotline", "Vệ sinh"]


class TestFailures:
    async def test_non_json_response(self, seeded_db):
        html = "<!DOCTYPE html>" + "x" * 500

        result = await _run(seeded_db, html)

        assert result.kind is SyncFailureKind.MALFORMED_REMOTE_RESPONSE
        assert result.details == html[:100]
        assert result.to_dict()["details"] == html[:100]

    @pytest.mark.parametrize("payload", [[1, 2], {"error": "boom"}, {"employees": "x"}])
    async def test_invalid_shape(self, seeded_db, payload):
        result = await _run(seeded_db, payload)
        assert result.kind is SyncFailureKind.INVALID_PAYLOAD_SHAPE

    async def test_connection_error(self, seeded_db):
        transport = FakeTransport(error=ConnectivityFailure("Lỗi kết nối máy chủ Google: timeout"))
        result = await ImportPipeline(seeded_db, transport).run()
        assert result.kind is SyncFailureKind.CONNECTIVITY_FAILURE
        assert "timeout" in result.message

    async def test_unexpected_error_reported_as_connectivity(self, seeded_db):
        transport = FakeTransport(error=aiohttp.ClientPayloadError("truncated"))
        result = await ImportPipeline(seeded_db, transport).run()
        assert result.kind is SyncFailureKind.CONNECTIVITY_FAILURE

    async def test_failed_write_rolls_back(self, seeded_db):
        before = seeded_db.snapshot()
        announcements = [
            {"id": 1, "message": "A", "created_by": 1},
            {"id": 1, "message": "B", "created_by": 1},
        ]

        result = await _run(seeded_db, _payload(announcements=announcements))

        assert result.kind is SyncFailureKind.TRANSACTION_FAILURE
        assert seeded_db.snapshot() == before

    async def test_task_seed_error_reported(self, seeded_db, monkeypatch):
        def locked():
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(seeded_db, "seed_tasks", locked)

        result = await _run(seeded_db, _payload())

        assert not result.success
        assert result.kind is SyncFailureKind.TRANSACTION_FAILURE
        assert "database is locked" in result.message
