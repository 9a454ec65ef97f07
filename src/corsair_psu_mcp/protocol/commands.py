"""Address, opcode and rail constants plus command builders.

Sensor reads go to address 0x03 with the opcode naming the quantity.
Rail-scoped opcodes (0x8B, 0x8C, 0x96) report whichever output rail was
last selected through address 0x02.
"""

from __future__ import annotations

from enum import IntEnum

from .framing import build_frame


class Address(IntEnum):
    """Address/class selector byte values."""

    RAIL_SELECT = 0x02
    PSU = 0x03
    HANDSHAKE = 0xFE


class Command(IntEnum):
    """Opcodes understood by the device."""

    RAIL_SELECT = 0x00
    HANDSHAKE = 0x03
    SUPPLY_VOLTAGE = 0x88
    RAIL_VOLTAGE = 0x8B
    RAIL_CURRENT = 0x8C
    TEMP1 = 0x8D
    TEMP2 = 0x8E
    FAN_SPEED = 0x90
    RAIL_POWER = 0x96
    VENDOR = 0x99
    PRODUCT = 0x9A
    TOTAL_UPTIME = 0xD1
    CURRENT_UPTIME = 0xD2
    OCP_MODE = 0xD8
    TOTAL_POWER = 0xEE
    FAN_MODE = 0xF0
    NAME = 0xFE


class Rail(IntEnum):
    """Output rails; the value is the opdata of the rail-select command."""

    RAIL_12V = 0
    RAIL_5V = 1
    RAIL_3V3 = 2


RAIL_LABELS: dict[Rail, str] = {
    Rail.RAIL_12V: "+12V",
    Rail.RAIL_5V: "+5V",
    Rail.RAIL_3V3: "+3.3V",
}

# OCP mode values reported by opcode 0xD8
OCP_SINGLE_RAIL = 1
OCP_MULTI_RAIL = 2

OCP_MODES: dict[int, str] = {
    OCP_SINGLE_RAIL: "single-rail",
    OCP_MULTI_RAIL: "multi-rail",
}


def build_command(
    opcode: int, address: int = Address.PSU, opdata: int = 0
) -> bytes:
    """Build a single 64-byte HID report for a command."""
    return build_frame(int(address), int(opcode), int(opdata))


def build_handshake() -> bytes:
    """Build the identification command used to resync the device."""
    return build_command(Command.HANDSHAKE, Address.HANDSHAKE)


def build_select_rail(rail: int) -> bytes:
    """Build a rail-select command.

    Args:
        rail: Rail code 0-2 (12V, 5V, 3.3V).
    """
    try:
        rail = Rail(rail)
    except ValueError:
        raise ValueError(f"Rail code must be 0-2, got {rail}") from None
    return build_command(Command.RAIL_SELECT, Address.RAIL_SELECT, rail.value)
