# shiftsync/web/handlers.py
from __future__ import annotations

import logging
import sqlite3

from aiohttp import web

from shiftsync.store.database import SHEETS_URL_SETTING
from shiftsync.store.repository import MonthLockedError, Repository
from shiftsync.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)

routes = web.RouteTableDef()


def register_handlers(app: web.Application) -> None:
    """Gắn toàn bộ route và middleware xử lý lỗi lên ứng dụng."""
    app.middlewares.append(error_middleware)
    app.add_routes(routes)


# -------- tiện ích chung --------


def _repo(request: web.Request) -> Repository:
    return request.app["repo"]


def _sync(request: web.Request) -> SyncOrchestrator:
    return request.app["sync"]


def _id(request: web.Request) -> int:
    try:
        return int(request.match_info["id"])
    except ValueError:
        raise web.HTTPBadRequest(text="id must be an integer")


def _ok(**extra) -> web.Response:
    return web.json_response({"success": True, **extra})


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except MonthLockedError as exc:
        return web.json_response({"error": str(exc)}, status=403)
    except KeyError as exc:
        return web.json_response({"error": f"Thiếu trường {exc}"}, status=400)
    except LookupError as exc:
        return web.json_response({"error": str(exc)}, status=404)
    except sqlite3.IntegrityError:
        logger.exception("Constraint violation on %s %s", request.method, request.path)
        return web.json_response({"error": "Dữ liệu không hợp lệ hoặc đã tồn tại"}, status=400)
    except ValueError as exc:
        # thân yêu cầu không phải JSON hợp lệ
        return web.json_response({"error": str(exc)}, status=400)


# -------- cài đặt và đồng bộ --------


@routes.get("/api/settings")
async def get_settings(request: web.Request) -> web.Response:
    return web.json_response(_repo(request).db.list_settings())


@routes.post("/api/settings")
async def save_setting(request: web.Request) -> web.Response:
    body = await request.json()
    key, value = body["key"], body.get("value")
    if key == SHEETS_URL_SETTING:
        result = await _sync(request).set_endpoint(value)
        if result is not None and not result.success:
            logger.warning("Import after URL change failed: %s", result.message)
    else:
        _repo(request).db.set_setting(key, value)
    return _ok()


@routes.post("/api/sync")
async def sync_from_sheet(request: web.Request) -> web.Response:
    result = await _sync(request).import_remote()
    return web.json_response(result.to_dict(), status=200 if result.success else 400)


# -------- nhân viên --------


@routes.get("/api/employees")
async def list_employees(request: web.Request) -> web.Response:
    return web.json_response(_repo(request).list_employees())


@routes.post("/api/employees")
async def create_employee(request: web.Request) -> web.Response:
    b = await request.json()
    employee = _repo(request).create_employee(
        b["code"], b["name"], b.get("department"), b.get("role"), b.get("phone"),
        b.get("password") or "",
    )
    return web.json_response(employee)


@routes.put("/api/employees/{id}")
async def update_employee(request: web.Request) -> web.Response:
    b = await request.json()
    _repo(request).update_employee(
        _id(request), b["code"], b["name"], b.get("department"), b.get("role"), b.get("phone")
    )
    return _ok()


@routes.delete("/api/employees/{id}")
async def delete_employee(request: web.Request) -> web.Response:
    _repo(request).delete_employee(_id(request))
    return _ok()


@routes.post("/api/change-password")
async def change_password(request: web.Request) -> web.Response:
    b = await request.json()
    _repo(request).change_password(int(b["employee_id"]), b["new_password"])
    return _ok()


# -------- danh mục ca --------


@routes.get("/api/shifts")
async def list_shifts(request: web.Request) -> web.Response:
    return web.json_response(_repo(request).list_shifts())


@routes.post("/api/shifts")
async def create_shift(request: web.Request) -> web.Response:
    b = await request.json()
    shift_id = _repo(request).create_shift(
        b["name"], b["start_time"], b["end_time"], b.get("color"), b.get("text_color"),
        b.get("department"),
    )
    return web.json_response({"id": shift_id})


@routes.put("/api/shifts/{id}")
async def update_shift(request: web.Request) -> web.Response:
    b = await request.json()
    _repo(request).update_shift(
        _id(request), b["name"], b["start_time"], b["end_time"], b.get("color"),
        b.get("text_color"), b.get("department"),
    )
    return _ok()


@routes.delete("/api/shifts/{id}")
async def delete_shift(request: web.Request) -> web.Response:
    _repo(request).delete_shift(_id(request))
    return _ok()


# -------- lịch làm việc --------


@routes.get("/api/schedules")
async def list_schedules(request: web.Request) -> web.Response:
    q = request.query
    return web.json_response(_repo(request).list_schedules(q.get("start", ""), q.get("end", "")))


@routes.post("/api/schedules")
async def upsert_schedule(request: web.Request) -> web.Response:
    b = await request.json()
    _repo(request).upsert_schedule(
        b["date"], b["employee_id"], b["shift_id"], b.get("task"), b.get("status"), b.get("note")
    )
    return _ok()


@routes.post("/api/schedules/bulk")
async def bulk_schedules(request: web.Request) -> web.Response:
    b = await request.json()
    count = _repo(request).bulk_upsert_schedules(b.get("schedules") or [])
    return _ok(count=count)


@routes.post("/api/schedules/copy-week")
async def copy_week(request: web.Request) -> web.Response:
    b = await request.json()
    count = _repo(request).copy_week(b["fromStartDate"], b["toStartDate"])
    return _ok(count=count)


@routes.delete("/api/schedules/week")
async def delete_week(request: web.Request) -> web.Response:
    q = request.query
    if not q.get("start") or not q.get("end"):
        return web.json_response({"error": "Thiếu ngày bắt đầu hoặc kết thúc"}, status=400)
    _repo(request).delete_schedules_between(q["start"], q["end"], q.get("department"))
    return _ok()


@routes.delete("/api/schedules/{id}")
async def delete_schedule(request: web.Request) -> web.Response:
    _repo(request).delete_schedule(_id(request))
    return _ok()


# -------- chốt tháng --------


@routes.get("/api/locked-months")
async def list_locked_months(request: web.Request) -> web.Response:
    return web.json_response(_repo(request).list_locked_months())


@routes.post("/api/locked-months")
async def set_locked_month(request: web.Request) -> web.Response:
    b = await request.json()
    _repo(request).set_month_locked(b["month"], bool(b.get("locked")))
    return _ok()


# -------- thông báo --------


@routes.get("/api/announcements")
async def list_announcements(request: web.Request) -> web.Response:
    q = request.query
    repo = _repo(request)
    if q.get("employee_id"):
        items = repo.active_announcements_for(int(q["employee_id"]), q.get("department", ""))
    else:
        items = repo.list_announcements()
    return web.json_response(items)


@routes.post("/api/announcements")
async def create_announcement(request: web.Request) -> web.Response:
    b = await request.json()
    _repo(request).create_announcement(
        b.get("type"), b.get("target_type"), b.get("target_value"), b["message"],
        b.get("start_time"), b.get("end_time"), b.get("created_by"),
    )
    return _ok()


@routes.put("/api/announcements/{id}")
async def update_announcement(request: web.Request) -> web.Response:
    b = await request.json()
    _repo(request).update_announcement(
        _id(request), b.get("type"), b.get("target_type"), b.get("target_value"), b["message"],
        b.get("start_time"), b.get("end_time"),
    )
    return _ok()


@routes.delete("/api/announcements/{id}")
async def delete_announcement(request: web.Request) -> web.Response:
    _repo(request).delete_announcement(_id(request))
    return _ok()


@routes.post("/api/announcements/{id}/view")
async def record_view(request: web.Request) -> web.Response:
    b = await request.json()
    _repo(request).record_view(_id(request), int(b["employee_id"]))
    return _ok()


@routes.get("/api/announcements/{id}/views")
async def list_views(request: web.Request) -> web.Response:
    return web.json_response(_repo(request).list_views(_id(request)))


# -------- đơn nghỉ phép --------


@routes.get("/api/leave-requests")
async def list_leave_requests(request: web.Request) -> web.Response:
    return web.json_response(_repo(request).list_leave_requests())


@routes.post("/api/leave-requests")
async def create_leave_request(request: web.Request) -> web.Response:
    b = await request.json()
    _repo(request).create_leave_request(b["employee_id"], b["date"], b["shift_id"], b.get("reason"))
    return _ok()


@routes.put("/api/leave-requests/{id}/status")
async def set_leave_status(request: web.Request) -> web.Response:
    b = await request.json()
    _repo(request).set_leave_status(_id(request), b["status"])
    return _ok()


@routes.delete("/api/leave-requests/{id}")
async def delete_leave_request(request: web.Request) -> web.Response:
    _repo(request).delete_leave_request(_id(request))
    return _ok()


# -------- nhiệm vụ --------


@routes.get("/api/tasks")
async def list_tasks(request: web.Request) -> web.Response:
    return web.json_response(_repo(request).list_tasks(request.query.get("department")))


@routes.post("/api/tasks")
async def create_task(request: web.Request) -> web.Response:
    b = await request.json()
    _repo(request).create_task(b["department"], b["name"], b.get("color"), b.get("text_color"))
    return _ok()


@routes.delete("/api/tasks/{id}")
async def delete_task(request: web.Request) -> web.Response:
    _repo(request).delete_task(_id(request))
    return _ok()
