# shiftsync/sheets/gateway.py
"""
HTTP gateway đứng trước Google Sheet.

GET  /  -> toàn bộ tám bảng dạng JSON
POST /  -> {"action": "sync_all", "data": {...}} ghi đè toàn bộ tám bảng

Lỗi luôn được trả về dạng JSON (HTTP 200) để phía ứng dụng phân biệt được
"Sheet báo lỗi" với "URL trả về thứ không phải JSON".
"""
from __future__ import annotations

import json
import logging
from typing import Optional

from aiohttp import web

from shiftsync.config import GatewayConfig
from shiftsync.logging_config import setup_logging
from . import init_sheets_client
from .client import SheetsClient
from .schema import SYNC_ACTION

logger = logging.getLogger(__name__)

NO_SPREADSHEET_MESSAGE = (
    "Không thể kết nối với Google Sheet. "
    "Hãy kiểm tra GOOGLE_SHEET_ID và quyền truy cập của service account."
)


def _require_client(request: web.Request) -> SheetsClient:
    client = request.app["sheets"]
    if client is None:
        raise RuntimeError(NO_SPREADSHEET_MESSAGE)
    return client


async def handle_pull(request: web.Request) -> web.Response:
    try:
        client = _require_client(request)
        data = client.pull_all()
    except Exception as exc:
        logger.exception("Failed to read spreadsheet")
        return web.json_response({"error": str(exc)})

    logger.info(
        "Pulled %d employees, %d schedules",
        len(data["employees"]),
        len(data["schedules"]),
    )
    return web.json_response(data)


async def handle_push(request: web.Request) -> web.Response:
    try:
        client = _require_client(request)
        # Phía gửi dùng text/plain, nên tự parse thân yêu cầu
        params = json.loads(await request.text())
        action = params.get("action")
        if action != SYNC_ACTION:
            return web.json_response({"success": False, "error": f"Unknown action: {action}"})
        client.sync_all(params.get("data") or {})
    except Exception as exc:
        logger.exception("Failed to write spreadsheet")
        return web.json_response({"success": False, "error": str(exc)})

    return web.json_response({"success": True})


def create_gateway_app(sheets_client: Optional[SheetsClient]) -> web.Application:
    app = web.Application()
    app["sheets"] = sheets_client
    app.router.add_get("/", handle_pull)
    app.router.add_post("/", handle_push)
    return app


def main():
    setup_logging()
    config = GatewayConfig.from_env()
    app = create_gateway_app(init_sheets_client(config))
    web.run_app(app, host=config.host, port=config.port)


if __name__ == "__main__":
    main()
