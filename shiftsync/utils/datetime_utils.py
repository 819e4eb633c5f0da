from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Union
from zoneinfo import ZoneInfo

# Điểm gốc của số serial ngày trong Google Sheets
SHEETS_EPOCH = datetime(1899, 12, 30)


def now_iso() -> str:
    """Thời điểm hiện tại dạng ISO-8601 UTC, ví dụ 2024-03-10T08:15:00.000Z."""
    return to_iso_instant(datetime.now(timezone.utc))


def to_iso_instant(value: datetime, tz_name: Optional[str] = None) -> str:
    """
    ISO-8601 UTC với mili-giây và hậu tố Z.
    Giá trị không có múi giờ được hiểu theo tz_name (hoặc UTC).
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=ZoneInfo(tz_name) if tz_name else timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_iso_instant(value: str) -> datetime:
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def serial_to_datetime(serial: Union[int, float]) -> datetime:
    # làm tròn tới giây: 0.3541666… ngày phải ra đúng 08:30:00
    return SHEETS_EPOCH + timedelta(seconds=round(float(serial) * 86400))


def format_time_hm(value: Union[datetime, time]) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def month_key(date_str: str) -> str:
    """'2024-03-10' -> '2024-03'."""
    return date_str[:7]


def shift_date(date_str: str, days: int) -> str:
    return (date.fromisoformat(date_str[:10]) + timedelta(days=days)).isoformat()


def days_between(start: str, end: str) -> int:
    return (date.fromisoformat(end[:10]) - date.fromisoformat(start[:10])).days


def months_between(start: str, end: str) -> List[str]:
    """Các tháng 'YYYY-MM' từ tháng của start tới tháng của end (bao gồm cả hai)."""
    year, month = int(start[:4]), int(start[5:7])
    last = (int(end[:4]), int(end[5:7]))
    months = []
    while (year, month) <= last:
        months.append(f"{year:04d}-{month:02d}")
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)
    return months
