# shiftsync/main.py
from __future__ import annotations

import logging
from typing import Optional

from aiohttp import web

from shiftsync.config import AppConfig, load_config
from shiftsync.logging_config import setup_logging
from shiftsync.store.database import Database
from shiftsync.store.repository import Repository
from shiftsync.sync.orchestrator import SyncOrchestrator
from shiftsync.web.handlers import register_handlers

logger = logging.getLogger(__name__)


async def on_startup(app: web.Application):
    """
    Khi ứng dụng khởi động: nạp lại dữ liệu từ Google Sheets nếu đã cấu hình URL.
    Kho cục bộ có thể nằm trên ổ đĩa tạm, mất sau mỗi lần khởi động lại.
    """
    sync: SyncOrchestrator = app["sync"]
    await sync.startup()


async def on_cleanup(app: web.Application):
    sync: SyncOrchestrator = app["sync"]
    await sync.close()
    app["db"].close()


def create_web_app(config: AppConfig, sync: Optional[SyncOrchestrator] = None) -> web.Application:
    db = sync.db if sync is not None else Database(config.database_path)
    db.bootstrap()

    if sync is None:
        sync = SyncOrchestrator(db, config)

    # Mọi thay đổi cục bộ -> hẹn đẩy dữ liệu lên Sheet
    repo = Repository(db, on_change=sync.schedule_export)

    app = web.Application()
    app["config"] = config
    app["db"] = db
    app["repo"] = repo
    app["sync"] = sync

    register_handlers(app)

    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)

    return app


def main():
    setup_logging()
    config = load_config()
    app = create_web_app(config)
    logger.info("Server running on http://%s:%d", config.host, config.port)
    web.run_app(app, host=config.host, port=config.port)


if __name__ == "__main__":
    main()
