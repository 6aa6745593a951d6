"""I/O subsystem — interrupts, the timer/I/O controller, and context channels.

Re-exports public symbols so callers can write::

    from kernelsim.io import InterruptController, Vector
"""

from kernelsim.io.channels import (
    MAX_RESUME_POINT,
    Channel,
    ChannelPair,
    Operation,
    ProtocolViolation,
    SyscallContext,
    decode_resume_point,
    encode_resume_point,
)
from kernelsim.io.controller import ControllerBusyError, DeviceState, InterController, IoRequest
from kernelsim.io.interrupts import (
    InterruptController,
    InterruptRequest,
    InterruptType,
    Vector,
)

__all__ = [
    "MAX_RESUME_POINT",
    "Channel",
    "ChannelPair",
    "ControllerBusyError",
    "DeviceState",
    "InterController",
    "InterruptController",
    "InterruptRequest",
    "InterruptType",
    "IoRequest",
    "Operation",
    "ProtocolViolation",
    "SyscallContext",
    "Vector",
    "decode_resume_point",
    "encode_resume_point",
]
