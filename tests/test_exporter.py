import pytest

from conftest import FakeTransport, SheetBackedTransport

from shiftsync.sheets.schema import PAYLOAD_FIELDS
from shiftsync.store.repository import Repository
from shiftsync.sync.errors import ConnectivityFailure, SyncFailureKind
from shiftsync.sync.exporter import ExportPipeline, build_envelope
from shiftsync.sync.importer import ImportPipeline


class TestEnvelope:
    def test_has_action_and_all_collections(self, seeded_db):
        envelope = build_envelope(seeded_db.snapshot())

        assert envelope["action"] == "sync_all"
        assert list(envelope["data"]) == PAYLOAD_FIELDS
        assert envelope["data"]["announcements"] == []

    def test_missing_collections_sent_empty(self):
        envelope = build_envelope({"employees": [{"id": 1}]})
        assert envelope["data"]["employees"] == [{"id": 1}]
        assert all(envelope["data"][name] == [] for name in PAYLOAD_FIELDS if name != "employees")

    def test_snapshot_keeps_time_text(self, seeded_db):
        shifts = seeded_db.snapshot()["shifts"]
        assert shifts[0]["start_time"] == "08:30"


class TestExport:
    async def test_success(self, seeded_db):
        transport = FakeTransport()

        result = await ExportPipeline(seeded_db, transport).export()

        assert result.success
        assert result.employees == 1
        assert len(transport.pushes) == 1
        assert transport.pushes[0]["data"]["employees"][0]["code"] == "ADMIN"

    async def test_remote_reports_error(self, seeded_db):
        transport = FakeTransport(push_response='{"success": false, "error": "quota"}')

        result = await ExportPipeline(seeded_db, transport).export()

        assert result.kind is SyncFailureKind.REMOTE_ERROR
        assert "quota" in result.message

    async def test_html_login_page(self, seeded_db):
        page = "<html>" + "đăng nhập" * 100
        transport = FakeTransport(push_response=page)

        result = await ExportPipeline(seeded_db, transport).export()

        assert result.kind is SyncFailureKind.MALFORMED_REMOTE_RESPONSE
        assert result.details == page[:200]

    @pytest.mark.parametrize(
        "error",
        [ConnectivityFailure("Lỗi kết nối máy chủ Google: refused"), OSError("reset")],
    )
    async def test_transport_errors(self, seeded_db, error):
        result = await ExportPipeline(seeded_db, FakeTransport(error=error)).export()
        assert result.kind is SyncFailureKind.CONNECTIVITY_FAILURE

    async def test_failure_leaves_local_data(self, seeded_db):
        before = seeded_db.snapshot()
        await ExportPipeline(seeded_db, FakeTransport(error=OSError("reset"))).export()
        assert seeded_db.snapshot() == before


class TestAgainstSheet:
    async def test_repeated_export_leaves_sheet_unchanged(self, seeded_db, sheets_client, spreadsheet):
        transport = SheetBackedTransport(sheets_client)
        await ExportPipeline(seeded_db, transport).export()
        first = {ws.title: ws.cells for ws in spreadsheet.worksheets()}

        await ExportPipeline(seeded_db, transport).export()
        second = {ws.title: ws.cells for ws in spreadsheet.worksheets()}

        assert first == second

    async def test_export_then_import_round_trips(self, seeded_db, sheets_client):
        repo = Repository(seeded_db)
        emp = repo.create_employee("NV01", "An", "Bán hàng", "Nhân viên", "0901")
        repo.upsert_schedule("2024-03-10", emp["id"], 1, "Trực cửa", "Published")
        before = seeded_db.snapshot()
        transport = SheetBackedTransport(sheets_client)

        assert (await ExportPipeline(seeded_db, transport).export()).success
        result = await ImportPipeline(seeded_db, transport).run()

        assert result.success
        after = seeded_db.snapshot()
        assert after["shifts"] == before["shifts"]
        assert after["tasks"] == before["tasks"]
        assert [(s["date"], s["employee_id"], s["task"]) for s in after["schedules"]] == [
            ("2024-03-10", emp["id"], "Trực cửa")
        ]
