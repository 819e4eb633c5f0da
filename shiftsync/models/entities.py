from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Role(str, Enum):
    ADMIN = "Admin"
    TEAM_LEAD = "Tổ trưởng"
    STAFF = "Nhân viên"


class LeaveStatus(str, Enum):
    PENDING = "Chờ duyệt"
    APPROVED = "Đã duyệt"
    REJECTED = "Từ chối"


class TargetType(str, Enum):
    ALL = "All"
    DEPARTMENT = "Department"
    INDIVIDUAL = "Individual"


ALL_DEPARTMENTS = "All"

# Ghi chú đánh dấu lịch được sinh ra khi duyệt đơn nghỉ phép
LEAVE_NOTE = "Nghỉ phép đã duyệt"
LEAVE_TASK = "Không"
LEAVE_SCHEDULE_STATUS = "Published"

FALLBACK_ADMIN_PASSWORD = "1234"


def normalize_role(value: Optional[str]) -> Role:
    """
    Chuẩn hoá vai trò lấy từ Sheet (chữ tự do) về một trong ba giá trị cố định.
    Không khớp hoặc bỏ trống -> Nhân viên.
    """
    if value is None:
        return Role.STAFF
    lowered = str(value).strip().lower()
    if lowered == Role.ADMIN.value.lower():
        return Role.ADMIN
    if lowered == Role.TEAM_LEAD.value.lower():
        return Role.TEAM_LEAD
    return Role.STAFF


@dataclass(frozen=True)
class Employee:
    code: str
    name: str
    department: str
    role: Role
    phone: str
    password: str


@dataclass(frozen=True)
class Shift:
    name: str
    department: str
    start_time: str  # "HH:mm"
    end_time: str    # "HH:mm"
    color: str
    text_color: str


@dataclass(frozen=True)
class Task:
    department: str
    name: str
    color: str
    text_color: str


DEFAULT_ADMIN = Employee(
    code="ADMIN",
    name="Quản trị viên",
    department="Quản lý",
    role=Role.ADMIN,
    phone="0999999999",
    password=FALLBACK_ADMIN_PASSWORD,
)

SEED_TASKS = (
    Task("Bán hàng", "Trực hotline", "#22c55e", "#ffffff"),
    Task("Bán hàng", "Trực cửa", "#a855f7", "#ffffff"),
    Task("Bán hàng", "Vệ sinh", "#06b6d4", "#ffffff"),
)


def _default_shifts() -> tuple:
    morning = ("#e0f2fe", "#0369a1")
    afternoon = ("#ffedd5", "#c2410c")
    off = ("#fef08a", "#854d0e")

    shifts = []
    for dept in ("Thu ngân", "Kỹ thuật", "Giao vận"):
        shifts.append(Shift("SÁNG", dept, "08:30", "17:00", *morning))
        shifts.append(Shift("CHIỀU", dept, "12:00", "21:00", *afternoon))

    shifts.append(Shift("SÁNG", "Kho", "08:30", "18:00", *morning))
    shifts.append(Shift("CHIỀU", "Kho", "12:00", "21:00", *afternoon))

    for dept in ("Bán hàng", "Quản lý"):
        shifts.append(Shift("SÁNG", dept, "08:30", "17:00", *morning))
        shifts.append(Shift("CHIỀU", dept, "13:00", "21:00", *afternoon))

    shifts.append(Shift("LỠ", ALL_DEPARTMENTS, "10:00", "19:00", "#d6c4b5", "#4a3b32"))
    shifts.append(Shift("OFF TUẦN", ALL_DEPARTMENTS, "00:00", "23:59", *off))
    shifts.append(Shift("OFF PHÉP", ALL_DEPARTMENTS, "00:00", "23:59", *off))
    shifts.append(Shift("OFF KHÔNG LƯƠNG", ALL_DEPARTMENTS, "00:00", "23:59", *off))
    shifts.append(Shift("TĂNG CA", ALL_DEPARTMENTS, "08:30", "21:00", "#ef4444", "#ffffff"))
    return tuple(shifts)


DEFAULT_SHIFTS = _default_shifts()
