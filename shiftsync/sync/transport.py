# shiftsync/sync/transport.py
from __future__ import annotations

import json
import logging
from typing import Any, Dict

import aiohttp

from .errors import ConnectivityFailure

logger = logging.getLogger(__name__)


class HttpTransport:
    """
    Kênh HTTP tới Web App của Google Sheets.

    Không đặt timeout riêng (dùng mặc định của aiohttp) và không tự thử lại:
    lỗi mạng được trả lên dưới dạng ConnectivityFailure.
    """

    def __init__(self, session: aiohttp.ClientSession, url: str):
        self.session = session
        self.url = url

    async def fetch(self) -> str:
        try:
            async with self.session.get(self.url, allow_redirects=True) as resp:
                return await resp.text()
        except aiohttp.ClientError as exc:
            raise ConnectivityFailure(f"Lỗi kết nối máy chủ Google: {exc}") from exc

    async def push(self, envelope: Dict[str, Any]) -> str:
        # text/plain để Web App không yêu cầu preflight và đọc thân yêu cầu như chuỗi
        body = json.dumps(envelope, ensure_ascii=False)
        try:
            async with self.session.post(
                self.url,
                data=body.encode("utf-8"),
                headers={"Content-Type": "text/plain"},
                allow_redirects=True,
            ) as resp:
                return await resp.text()
        except aiohttp.ClientError as exc:
            raise ConnectivityFailure(f"Lỗi kết nối máy chủ Google: {exc}") from exc
