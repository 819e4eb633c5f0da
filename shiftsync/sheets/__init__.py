# shiftsync/sheets/__init__.py
from __future__ import annotations

import logging
from typing import Optional

from shiftsync.config import GatewayConfig
from .client import SheetsClient

logger = logging.getLogger(__name__)


def init_sheets_client(config: GatewayConfig) -> Optional[SheetsClient]:
    """
    Khởi tạo kết nối Google Sheets.

    Không làm sập tiến trình khi cấu hình sai: ghi log lỗi và trả về None,
    gateway sẽ trả lỗi dạng JSON cho từng yêu cầu.
    """
    try:
        client = SheetsClient.from_config(config)
        logger.info("Google Sheets client initialized successfully")
        return client
    except Exception:
        logger.exception(
            "Failed to initialize Google Sheets client. "
            "Check GOOGLE_SERVICE_ACCOUNT_JSON, GOOGLE_SHEET_ID and service account access."
        )
        return None


__all__ = ["SheetsClient", "init_sheets_client"]
