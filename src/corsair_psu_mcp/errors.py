"""Error types raised while talking to the power supply.

Callers own retry policy: ``DeviceBusyError`` and ``TransportError`` are
transient and a later poll may succeed, ``ProtocolDesyncError`` is final
for the read that raised it, and ``UnsupportedSensorError`` means the
request itself was wrong. None of them leave the device handle unusable.
"""

from __future__ import annotations


class PSUError(Exception):
    """Base class for all power supply errors."""

    #: Stable machine-readable identifier used in server error payloads.
    code: str = "psu_error"


class DeviceBusyError(PSUError):
    """Another caller holds the device; the request was not sent."""

    code = "busy"


class TransportError(PSUError, IOError):
    """A USB send or receive failed or timed out."""

    code = "io_error"


class ProtocolDesyncError(PSUError):
    """The device echoed the wrong opcode even after a resync handshake."""

    code = "protocol_desync"

    def __init__(self, requested: int, echoed: int) -> None:
        self.requested = requested
        self.echoed = echoed
        super().__init__(
            f"Device answered opcode 0x{echoed:02X} to request 0x{requested:02X}"
        )


class UnsupportedSensorError(PSUError, LookupError):
    """No sensor is defined for the given category and channel."""

    code = "unsupported"

    def __init__(self, category: object, channel: int) -> None:
        self.category = category
        self.channel = channel
        super().__init__(f"No sensor {category}[{channel}]")
