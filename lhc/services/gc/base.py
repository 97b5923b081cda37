"""GC base classes and result structures."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable

from lhc.drivers.base import ClaimRecord, PersistentVolumeRecord, PodRecord


@dataclass
class GCResult:
    """Result of a sweep.

    Attributes:
        task_name: Name of the GC task
        found_count: Number of labelled objects discovered
        cleaned_count: Number of objects successfully deleted
        skipped_count: Number of objects left alone (declined or failed)
        confirmed: Whether the operator agreed to delete
        errors: List of error messages for failed deletions
    """

    task_name: str = ""
    found_count: int = 0
    cleaned_count: int = 0
    skipped_count: int = 0
    confirmed: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Whether the sweep completed without errors."""
        return len(self.errors) == 0

    def add_error(self, error: str) -> None:
        """Add an error message."""
        self.errors.append(error)


@dataclass
class SweepCandidates:
    """Labelled objects found by a sweep, in deletion order."""

    namespace: str
    pods: list[PodRecord] = field(default_factory=list)
    claims: list[ClaimRecord] = field(default_factory=list)
    persistent_volumes: list[PersistentVolumeRecord] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.pods) + len(self.claims) + len(self.persistent_volumes)

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    def describe(self) -> list[str]:
        """Human-readable listing grouped by kind."""
        lines: list[str] = []
        groups = (
            ("Pods", self.pods),
            ("PersistentVolumeClaims", self.claims),
            ("PersistentVolumes", self.persistent_volumes),
        )
        for title, records in groups:
            if not records:
                continue
            lines.append(f"{title}:")
            lines.extend(f"  - {r.name} (Status: {r.phase})" for r in records)
            lines.append("")
        return lines


# Receives the candidates (non-empty) and returns True to delete them
ConfirmCallback = Callable[[SweepCandidates], bool]


class GCTask(ABC):
    """Abstract base class for GC tasks.

    Individual deletion failures are logged and collected in
    GCResult.errors; they never abort the rest of the sweep.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the task name (for logging)."""
        ...

    @abstractmethod
    async def sweep(self, namespace: str, confirm: ConfirmCallback) -> GCResult:
        """Discover candidates, ask `confirm`, then delete.

        Returns:
            GCResult with cleanup statistics
        """
        ...
