"""Tests for command constants and builders."""

import pytest

from corsair_psu_mcp.protocol.commands import (
    Address,
    Command,
    Rail,
    build_command,
    build_handshake,
    build_select_rail,
)
from corsair_psu_mcp.protocol.framing import parse_frame, REPORT_SIZE


def test_command_enum_values():
    """Verify key opcodes match the device protocol."""
    assert Command.NAME == 0xFE
    assert Command.VENDOR == 0x99
    assert Command.PRODUCT == 0x9A
    assert Command.TEMP1 == 0x8D
    assert Command.TEMP2 == 0x8E
    assert Command.FAN_SPEED == 0x90
    assert Command.SUPPLY_VOLTAGE == 0x88
    assert Command.TOTAL_POWER == 0xEE
    assert Command.RAIL_VOLTAGE == 0x8B
    assert Command.RAIL_CURRENT == 0x8C
    assert Command.RAIL_POWER == 0x96
    assert Command.TOTAL_UPTIME == 0xD1
    assert Command.CURRENT_UPTIME == 0xD2
    assert Command.OCP_MODE == 0xD8
    assert Command.FAN_MODE == 0xF0


def test_rail_codes():
    assert [r.value for r in Rail] == [0, 1, 2]
    assert Rail.RAIL_12V == 0
    assert Rail.RAIL_3V3 == 2


def test_build_command_defaults_to_sensor_address():
    frame = build_command(Command.TEMP1)
    assert len(frame) == REPORT_SIZE
    parsed = parse_frame(frame)
    assert parsed is not None
    assert parsed.address == Address.PSU
    assert parsed.opcode == Command.TEMP1


def test_build_handshake():
    """Handshake is address 0xFE, opcode 0x03, opdata 0x00."""
    frame = build_handshake()
    assert frame[:3] == bytes([0xFE, 0x03, 0x00])


@pytest.mark.parametrize("rail", list(Rail))
def test_build_select_rail(rail):
    frame = build_select_rail(rail)
    assert frame[:3] == bytes([0x02, 0x00, rail.value])


def test_select_rail_bounds():
    """Unknown rail codes should raise."""
    with pytest.raises(ValueError):
        build_select_rail(3)
    with pytest.raises(ValueError):
        build_select_rail(-1)
