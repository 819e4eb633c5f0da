# shiftsync/sync/errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class SyncFailureKind(str, Enum):
    CONFIGURATION_MISSING = "configuration_missing"
    MALFORMED_REMOTE_RESPONSE = "malformed_remote_response"
    INVALID_PAYLOAD_SHAPE = "invalid_payload_shape"
    DESTRUCTIVE_OVERWRITE_BLOCKED = "destructive_overwrite_blocked"
    TRANSACTION_FAILURE = "transaction_failure"
    CONNECTIVITY_FAILURE = "connectivity_failure"
    REMOTE_ERROR = "remote_error"


class SyncError(Exception):
    """Lỗi đồng bộ; được chuyển thành SyncResult ở ranh giới pipeline."""

    kind = SyncFailureKind.CONNECTIVITY_FAILURE

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ConfigurationMissing(SyncError):
    kind = SyncFailureKind.CONFIGURATION_MISSING


class MalformedRemoteResponse(SyncError):
    kind = SyncFailureKind.MALFORMED_REMOTE_RESPONSE


class InvalidPayloadShape(SyncError):
    kind = SyncFailureKind.INVALID_PAYLOAD_SHAPE


class DestructiveOverwriteBlocked(SyncError):
    kind = SyncFailureKind.DESTRUCTIVE_OVERWRITE_BLOCKED


class TransactionFailure(SyncError):
    kind = SyncFailureKind.TRANSACTION_FAILURE


class ConnectivityFailure(SyncError):
    kind = SyncFailureKind.CONNECTIVITY_FAILURE


class RemoteError(SyncError):
    kind = SyncFailureKind.REMOTE_ERROR


@dataclass
class SyncResult:
    success: bool
    message: str
    kind: Optional[SyncFailureKind] = None
    employees: int = 0
    schedules: int = 0
    details: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str, **kwargs: Any) -> "SyncResult":
        return cls(success=True, message=message, **kwargs)

    @classmethod
    def failed(cls, error: SyncError) -> "SyncResult":
        return cls(success=False, message=error.message, kind=error.kind, details=error.details)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success}
        if self.success:
            data["message"] = self.message
            data["employees"] = self.employees
            data["schedules"] = self.schedules
        else:
            data["error"] = self.message
            data["kind"] = self.kind.value if self.kind else None
            if self.details is not None:
                data["details"] = self.details
        data.update(self.extra)
        return data
