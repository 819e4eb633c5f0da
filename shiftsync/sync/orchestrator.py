# shiftsync/sync/orchestrator.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Set

import aiohttp

from shiftsync.config import AppConfig
from shiftsync.store.database import SHEETS_URL_SETTING, Database
from .errors import ConfigurationMissing, SyncResult
from .exporter import ExportPipeline
from .importer import ImportPipeline
from .transport import HttpTransport

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "Chưa cấu hình URL Google Sheets"


class ExportScheduler:
    """
    Hẹn giờ đẩy dữ liệu (debounce).

    Chỉ có tối đa một bộ hẹn giờ đang chờ: mỗi lần schedule_export() huỷ
    bộ cũ và hẹn lại từ đầu. Lần đẩy đã chạy thì không huỷ được.
    """

    def __init__(self, callback: Callable[[], Awaitable[Any]], delay: float):
        self._callback = callback
        self.delay = delay
        self._handle: Optional[asyncio.TimerHandle] = None
        self._running: Set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule_export(self) -> None:
        loop = asyncio.get_running_loop()
        self.cancel_pending()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel_pending(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        task = asyncio.get_running_loop().create_task(self._run())
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    async def _run(self) -> None:
        try:
            await self._callback()
        except Exception:
            logger.exception("Scheduled export failed")

    async def wait_idle(self) -> None:
        """Chờ các lần đẩy đang chạy kết thúc (không tính bộ hẹn giờ đang chờ)."""
        if self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)


class SyncOrchestrator:
    """
    Điều phối hai chiều đồng bộ cho toàn tiến trình.

    - URL Web App: bảng settings, nếu trống thì lấy GOOGLE_SHEETS_URL từ môi trường;
    - nhập (Sheet -> local): khi khởi động, khi người vận hành yêu cầu,
      ngay sau khi đổi URL;
    - xuất (local -> Sheet): sau mỗi thay đổi cục bộ, qua ExportScheduler.

    Nhập và xuất dùng chung một khoá nên không bao giờ chạy chồng lên nhau.
    """

    def __init__(
        self,
        db: Database,
        config: AppConfig,
        transport_factory: Optional[Callable[[str], Any]] = None,
    ):
        self.db = db
        self.config = config
        self._transport_factory = transport_factory or self._http_transport
        self._session: Optional[aiohttp.ClientSession] = None
        self._lock = asyncio.Lock()
        self.scheduler = ExportScheduler(self.export_now, config.sync_debounce_seconds)

    @property
    def endpoint(self) -> Optional[str]:
        # dòng cài đặt rỗng -> tắt đồng bộ, không dùng biến môi trường
        value = self.db.get_setting(SHEETS_URL_SETTING)
        return self.config.google_sheets_url if value is None else value

    def _http_transport(self, url: str) -> HttpTransport:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return HttpTransport(self._session, url)

    # -------------------------------------------------------------------------
    # Hai chiều đồng bộ
    # -------------------------------------------------------------------------

    async def import_remote(self) -> SyncResult:
        url = self.endpoint
        if not url:
            return SyncResult.failed(ConfigurationMissing(NOT_CONFIGURED_MESSAGE))
        async with self._lock:
            return await ImportPipeline(self.db, self._transport_factory(url)).run()

    async def export_now(self) -> SyncResult:
        url = self.endpoint
        if not url:
            logger.debug("Export skipped: no Google Sheets URL configured")
            return SyncResult.failed(ConfigurationMissing(NOT_CONFIGURED_MESSAGE))
        async with self._lock:
            return await ExportPipeline(self.db, self._transport_factory(url)).export()

    def schedule_export(self) -> None:
        if not self.endpoint:
            return
        self.scheduler.schedule_export()

    def cancel_pending(self) -> None:
        self.scheduler.cancel_pending()

    # -------------------------------------------------------------------------
    # Vòng đời
    # -------------------------------------------------------------------------

    async def startup(self) -> Optional[SyncResult]:
        """
        Nhập dữ liệu khi khởi động (ổ đĩa có thể bị xoá sau mỗi lần deploy).
        Chỉ ghi log, không ném lỗi.
        """
        if not self.endpoint:
            logger.info("No Google Sheets URL configured, skipping startup sync")
            return None

        logger.info("Auto-syncing from Google Sheets on startup...")
        result = await self.import_remote()
        if result.success:
            logger.info(
                "Auto-sync completed: %d employees, %d schedules",
                result.employees,
                result.schedules,
            )
        else:
            logger.warning("Auto-sync failed (%s): %s", result.kind, result.message)
        return result

    async def set_endpoint(self, url: Optional[str]) -> Optional[SyncResult]:
        """Lưu URL mới; nếu khác rỗng thì nhập dữ liệu ngay."""
        url = (url or "").strip()
        self.db.set_setting(SHEETS_URL_SETTING, url)
        if not url:
            logger.info("Google Sheets URL cleared, sync disabled.")
            self.cancel_pending()
            return None
        logger.info("Google Sheets URL changed, importing...")
        return await self.import_remote()

    async def close(self) -> None:
        self.cancel_pending()
        await self.scheduler.wait_idle()
        if self._session is not None and not self._session.closed:
            await self._session.close()
