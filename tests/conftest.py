"""Shared fixtures for power supply tests."""

import sys
import types
from unittest.mock import patch

import pytest

from corsair_psu_mcp.protocol.engine import ProtocolEngine
from corsair_psu_mcp.protocol.rails import RailSelector
from corsair_psu_mcp.sensors import SensorRegistry

from fakes import FakeHidDevice, FakePSU, FakeTransport


@pytest.fixture
def psu():
    return FakePSU()


@pytest.fixture
def transport(psu):
    return FakeTransport(psu)


@pytest.fixture
def engine(transport):
    return ProtocolEngine(transport)


@pytest.fixture
def rails(engine):
    return RailSelector(engine)


@pytest.fixture
def registry(engine, rails):
    return SensorRegistry(engine, rails)


@pytest.fixture
def hid_device(psu):
    """Install a fake ``hid`` module whose device is backed by ``psu``."""
    device = FakeHidDevice(psu)
    fake_hid = types.SimpleNamespace(device=lambda: device)
    with patch.dict(sys.modules, {"hid": fake_hid}):
        yield device
