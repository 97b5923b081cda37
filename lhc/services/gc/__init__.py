"""Garbage collection of ephemeral resources.

Usage:
    from lhc.services.gc import TemporaryResourceSweeper

    sweeper = TemporaryResourceSweeper(control_plane, naming)
    result = await sweeper.sweep("default", confirm=ask_operator)
"""

from lhc.services.gc.base import ConfirmCallback, GCResult, GCTask, SweepCandidates
from lhc.services.gc.sweeper import TemporaryResourceSweeper

__all__ = [
    "ConfirmCallback",
    "GCResult",
    "GCTask",
    "SweepCandidates",
    "TemporaryResourceSweeper",
]
