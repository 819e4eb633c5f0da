# shiftsync/sync/__init__.py
from .errors import SyncFailureKind, SyncResult
from .exporter import ExportPipeline
from .importer import ImportPipeline
from .orchestrator import ExportScheduler, SyncOrchestrator

__all__ = [
    "ExportPipeline",
    "ExportScheduler",
    "ImportPipeline",
    "SyncFailureKind",
    "SyncOrchestrator",
    "SyncResult",
]
