# shiftsync/sync/exporter.py
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from shiftsync.sheets.schema import PAYLOAD_FIELDS, SYNC_ACTION
from shiftsync.store.database import Database
from .errors import ConnectivityFailure, MalformedRemoteResponse, RemoteError, SyncError, SyncResult

logger = logging.getLogger(__name__)

EXCERPT_LENGTH = 200

REDEPLOY_HINT = """
=============================================================
Google Sheets sync failed: the response is not valid JSON.
Response excerpt: %s...
How to fix:
1. Open the Apps Script project bound to the spreadsheet.
2. Deploy -> Manage deployments -> edit the active deployment.
3. Execute as: Me; Who has access: Anyone.
4. Deploy again and copy the new URL (it must end with /exec).
5. Save the new URL in the application settings.
============================================================="""


def build_envelope(snapshot: Dict[str, List[Dict[str, Any]]]) -> Dict[str, Any]:
    data = {name: list(snapshot.get(name) or []) for name in PAYLOAD_FIELDS}
    return {"action": SYNC_ACTION, "data": data}


def parse_push_response(text: str) -> None:
    """
    {"success": true} -> không có gì;
    {"success": false, "error": ...} -> RemoteError;
    không phải JSON -> MalformedRemoteResponse (Web App triển khai sai chế độ).
    """
    try:
        result = json.loads(text)
    except ValueError:
        raise MalformedRemoteResponse(
            "Phản hồi từ Google Sheets không phải là JSON hợp lệ.",
            details=text[:EXCERPT_LENGTH],
        ) from None
    if not isinstance(result, dict) or not result.get("success"):
        error = result.get("error") if isinstance(result, dict) else None
        raise RemoteError(f"Google Sheets báo lỗi: {error or result}")


class ExportPipeline:
    """Đẩy toàn bộ dữ liệu cục bộ lên Sheet (ghi đè, không so sánh khác biệt)."""

    def __init__(self, db: Database, transport):
        self.db = db
        self.transport = transport

    async def export(self, snapshot: Optional[Dict[str, List[Dict[str, Any]]]] = None) -> SyncResult:
        if snapshot is None:
            snapshot = self.db.snapshot()
        envelope = build_envelope(snapshot)

        try:
            text = await self.transport.push(envelope)
            parse_push_response(text)
        except MalformedRemoteResponse as exc:
            logger.error(REDEPLOY_HINT, exc.details)
            return SyncResult.failed(exc)
        except SyncError as exc:
            logger.error("Google Sheets sync error: %s", exc.message)
            return SyncResult.failed(exc)
        except Exception as exc:
            logger.exception("Failed to sync to Google Sheets")
            return SyncResult.failed(ConnectivityFailure(f"Lỗi kết nối máy chủ Google: {exc}"))

        logger.info("Synced to Google Sheets successfully")
        return SyncResult.ok(
            "Đã đồng bộ lên Google Sheets",
            employees=len(envelope["data"]["employees"]),
            schedules=len(envelope["data"]["schedules"]),
        )
