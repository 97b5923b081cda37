"""Streaming copy job state."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from lhc.models.access import AccessHandle


class CopyStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class CopyJob:
    """One producer/consumer transfer between two handles."""

    source: AccessHandle
    destination: AccessHandle
    status: CopyStatus = CopyStatus.PENDING
    first_error: BaseException | None = None
    failed_side: str | None = None

    def fail(self, side: str, error: BaseException) -> None:
        """Record a failure; only the first one is kept."""
        self.status = CopyStatus.FAILED
        if self.first_error is None:
            self.first_error = error
            self.failed_side = side
