"""Tests for the USB connection, using fake hidapi and pyusb modules."""

import sys
import threading
import time
import types
from unittest.mock import MagicMock, patch

import pytest

from corsair_psu_mcp.errors import DeviceBusyError, TransportError
from corsair_psu_mcp.protocol.framing import build_frame
from corsair_psu_mcp.transport.usb_connection import (
    EP_IN,
    EP_OUT,
    HID_INTERFACE,
    PRODUCT_ID,
    VENDOR_ID,
    USBConnection,
)

TEMP1 = build_frame(0x03, 0x8D)


def test_open_via_hidapi(hid_device):
    conn = USBConnection()
    info = conn.open()

    assert conn.connected
    assert hid_device.opened_with == (VENDOR_ID, PRODUCT_ID)
    assert info.manufacturer == "Corsair"
    assert info.product == "RM650i"


def test_send_recv_round_trip(hid_device, psu):
    conn = USBConnection()
    conn.open()

    response = conn.send_recv(TEMP1)

    assert len(response) == 64
    assert response[1] == 0x8D
    # hidapi writes carry a leading report ID
    assert hid_device.writes == [b"\x00" + TEMP1]
    assert psu.requests == [TEMP1]


def test_write_requires_connection():
    conn = USBConnection()
    with pytest.raises(ConnectionError):
        conn.send_recv(TEMP1)


def test_write_rejects_wrong_size(hid_device):
    conn = USBConnection()
    conn.open()
    with pytest.raises(ValueError):
        conn.write(b"\x03\x8D")


def test_failed_write_is_transport_error(hid_device):
    conn = USBConnection()
    conn.open()
    hid_device.write = MagicMock(return_value=-1)
    with pytest.raises(TransportError):
        conn.send_recv(TEMP1)


def test_write_exception_is_transport_error(hid_device):
    conn = USBConnection()
    conn.open()
    hid_device.write = MagicMock(side_effect=OSError("write error"))
    with pytest.raises(TransportError):
        conn.send_recv(TEMP1)


def test_read_timeout_is_transport_error(hid_device):
    conn = USBConnection(timeout_ms=5)
    conn.open()
    hid_device.read = MagicMock(return_value=[])
    with pytest.raises(TransportError):
        conn.send_recv(TEMP1)
    hid_device.read.assert_called_once_with(64, 5)


def test_hidapi_write_takes_no_timeout(hid_device):
    """hidapi has no write timeout; only the read carries timeout_ms."""
    conn = USBConnection(timeout_ms=7)
    conn.open()
    hid_device.write = MagicMock(return_value=65)
    hid_device.read = MagicMock(return_value=list(TEMP1))

    conn.send_recv(TEMP1)

    hid_device.write.assert_called_once_with(b"\x00" + TEMP1)
    hid_device.read.assert_called_once_with(64, 7)


def test_lock_released_after_error(hid_device):
    conn = USBConnection()
    conn.open()
    original_write = hid_device.write
    hid_device.write = MagicMock(side_effect=OSError("write error"))
    with pytest.raises(TransportError):
        conn.send_recv(TEMP1)

    hid_device.write = original_write
    assert conn.send_recv(TEMP1)[1] == 0x8D


def test_concurrent_callers_get_busy_immediately(hid_device):
    """While one exchange is in flight every other caller fails fast."""
    conn = USBConnection()
    conn.open()

    entered = threading.Event()
    release = threading.Event()
    original_write = hid_device.write

    def slow_write(data):
        entered.set()
        release.wait(timeout=5)
        return original_write(data)

    hid_device.write = slow_write
    results = []

    def first():
        results.append(("first", conn.send_recv(TEMP1)[1]))

    def other():
        start = time.monotonic()
        try:
            conn.send_recv(TEMP1)
            results.append(("other", "sent"))
        except DeviceBusyError:
            results.append(("other", time.monotonic() - start))

    holder = threading.Thread(target=first)
    holder.start()
    assert entered.wait(timeout=5)

    others = [threading.Thread(target=other) for _ in range(4)]
    for t in others:
        t.start()
    for t in others:
        t.join(timeout=2)
        assert not t.is_alive()

    release.set()
    holder.join(timeout=5)

    busy = [r for r in results if r[0] == "other"]
    assert len(busy) == 4
    assert all(isinstance(elapsed, float) and elapsed < 1.0 for _, elapsed in busy)
    assert ("first", 0x8D) in results


def test_exclusive_is_reentrant_for_owner(hid_device):
    conn = USBConnection()
    conn.open()
    with conn.exclusive():
        assert conn.send_recv(TEMP1)[1] == 0x8D


def test_close(hid_device):
    conn = USBConnection()
    conn.open()
    conn.close()
    assert not conn.connected
    assert hid_device.closed
    conn.close()  # second close is a no-op


def _fake_usb(dev):
    usb = MagicMock()
    usb.core.find.return_value = dev
    usb.util.get_string.return_value = "Corsair"
    return {"usb": usb, "usb.core": usb.core, "usb.util": usb.util}


def _failing_hid():
    device = MagicMock()
    device.open.side_effect = OSError("open failed")
    return types.SimpleNamespace(device=lambda: device)


def test_falls_back_to_pyusb():
    dev = MagicMock()
    dev.is_kernel_driver_active.return_value = True
    dev.write.return_value = 64
    response = bytearray(64)
    response[0:2] = b"\x03\x8D"
    dev.read.return_value = bytes(response)

    modules = _fake_usb(dev)
    modules["hid"] = _failing_hid()
    with patch.dict(sys.modules, modules):
        conn = USBConnection(timeout_ms=250)
        info = conn.open()
        result = conn.send_recv(TEMP1)
        conn.close()

    assert info.manufacturer == "Corsair"
    dev.detach_kernel_driver.assert_called_once_with(HID_INTERFACE)
    dev.write.assert_called_once_with(EP_OUT, TEMP1, timeout=250)
    dev.read.assert_called_once_with(EP_IN, 64, timeout=250)
    assert result == bytes(response)
    modules["usb.util"].release_interface.assert_called_once_with(dev, HID_INTERFACE)


def test_open_fails_when_no_backend_finds_device():
    modules = _fake_usb(None)
    modules["hid"] = _failing_hid()
    with patch.dict(sys.modules, modules):
        with pytest.raises(ConnectionError):
            USBConnection().open()
