"""Frame builder and parser for 64-byte USB HID reports.

Frame layout::

    +----------+---------+-----------------+------------------------------+
    | Address  | Opcode  | Opdata / Status |        Payload / Padding     |
    | 1 byte   | 1 byte  | 1 byte          |  61 bytes, zero-filled       |
    +----------+---------+-----------------+------------------------------+

- Address: class selector (0x02 rail select, 0x03 sensor read, 0xFE handshake)
- Opcode: command identifier; echoed back by the device in every response
- Opdata: command parameter in requests (e.g. the rail code)

Responses reuse the same layout. The payload starts at byte 2 and its
length depends on what was requested.
"""

from __future__ import annotations

from dataclasses import dataclass

REPORT_SIZE = 64
PAYLOAD_OFFSET = 2


@dataclass
class Frame:
    """A parsed response frame."""

    address: int
    opcode: int
    payload: bytes

    def payload_slice(self, width: int) -> bytes:
        """Return the first ``width`` payload bytes."""
        return self.payload[:width]

    def __repr__(self) -> str:
        return (
            f"Frame(address=0x{self.address:02X}, opcode=0x{self.opcode:02X}, "
            f"payload={self.payload[:8].hex(' ')}...)"
        )


def _check_byte(name: str, value: int) -> None:
    if not 0 <= value <= 0xFF:
        raise ValueError(f"{name} must be 0-255, got {value}")


def build_frame(address: int, opcode: int, opdata: int = 0) -> bytes:
    """Build a 64-byte HID report for a single command.

    A new buffer is allocated on every call; frames are never shared
    between exchanges.

    Args:
        address: Address/class selector byte.
        opcode: Command identifier.
        opdata: Command parameter.

    Returns:
        A 64-byte ``bytes`` object ready to send via interrupt transfer.
    """
    _check_byte("address", address)
    _check_byte("opcode", opcode)
    _check_byte("opdata", opdata)

    report = bytearray(REPORT_SIZE)
    report[0] = address
    report[1] = opcode
    report[2] = opdata
    return bytes(report)


def parse_frame(data: bytes) -> Frame | None:
    """Parse a 64-byte HID report into a Frame.

    Args:
        data: A USB HID report as read from the device.

    Returns:
        A ``Frame``, or ``None`` if the report is too short to hold the
        address and opcode bytes.
    """
    if len(data) < PAYLOAD_OFFSET:
        return None
    return Frame(
        address=data[0],
        opcode=data[1],
        payload=bytes(data[PAYLOAD_OFFSET:REPORT_SIZE]),
    )
