"""Process subsystem — PCB, process table, blocked queue, and scheduling.

Re-exports public symbols so callers can write::

    from kernelsim.process import ProcessTable, ProcessState, Scheduler
"""

from kernelsim.process.blocked import BlockedQueue, BlockedQueueOverflow
from kernelsim.process.handles import ProcessHandle, RecordingHandle
from kernelsim.process.pcb import (
    LogicInvariantViolation,
    ProcessRecord,
    ProcessState,
    SavedContext,
)
from kernelsim.process.scheduler import RoundRobinPolicy, Scheduler, SchedulingPolicy
from kernelsim.process.table import ProcessTable

__all__ = [
    "BlockedQueue",
    "BlockedQueueOverflow",
    "LogicInvariantViolation",
    "ProcessHandle",
    "ProcessRecord",
    "ProcessState",
    "ProcessTable",
    "RecordingHandle",
    "RoundRobinPolicy",
    "SavedContext",
    "Scheduler",
    "SchedulingPolicy",
]
