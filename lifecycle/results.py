# campops_console/lifecycle/results.py
# TRANSITION RESULTS & ERROR TAXONOMY

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    GUARD_VIOLATION = "guard_violation"
    ALREADY_LOCKED = "already_locked"
    NOT_FOUND = "not_found"
    STORE_UNAVAILABLE = "store_unavailable"
    DATA_SHAPE_ANOMALY = "data_shape_anomaly"


@dataclass(frozen=True)
class TransitionResult:
    """
    Outcome of a lifecycle call. A success carries the full patch that was (or
    is to be) merge-written; a failure carries an ErrorKind and a user-facing
    message and never a partial patch.
    """
    patch: Dict[str, Any] = field(default_factory=dict)
    error: Optional[ErrorKind] = None
    message: str = ""
    record_id: Optional[str] = None
    record: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, patch: Dict[str, Any], message: str = "", record_id: Optional[str] = None) -> 'TransitionResult':
        return cls(patch=patch, message=message, record_id=record_id)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, record_id: Optional[str] = None) -> 'TransitionResult':
        return cls(error=kind, message=message, record_id=record_id)

    def with_record_id(self, record_id: str) -> 'TransitionResult':
        return TransitionResult(self.patch, self.error, self.message, record_id, self.record)
