"""USB HID connection to a Corsair RMi/HXi power supply.

Supports both ``hidapi`` (preferred) and ``pyusb`` backends.
Requests go out on interrupt endpoint 0x01 and responses come back on
0x81, one 64-byte report each way.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from ..errors import DeviceBusyError, TransportError
from ..protocol.framing import REPORT_SIZE

logger = logging.getLogger(__name__)

VENDOR_ID = 0x1B1C
PRODUCT_ID = 0x1C0A
HID_INTERFACE = 0
EP_IN = 0x81
EP_OUT = 0x01
TIMEOUT_MS = 1000
HID_REPORT_ID = 0x00


@dataclass
class DeviceInfo:
    """Basic device identification from USB descriptors."""

    vendor_id: int = VENDOR_ID
    product_id: int = PRODUCT_ID
    manufacturer: str = ""
    product: str = ""
    model: str = ""


class USBConnection:
    """Manages the USB HID connection to the power supply.

    Only one exchange may be in flight at a time. ``send_recv`` takes the
    device lock without waiting and raises ``DeviceBusyError`` when another
    thread already holds it. Callers that need several exchanges to run
    back to back wrap them in ``exclusive()``; the lock is re-entrant for
    the thread that owns it.

    Usage::

        conn = USBConnection()
        conn.open()
        response = conn.send_recv(frame_bytes)
        conn.close()
    """

    def __init__(
        self,
        vendor_id: int = VENDOR_ID,
        product_id: int = PRODUCT_ID,
        timeout_ms: int = TIMEOUT_MS,
    ) -> None:
        self._vendor_id = vendor_id
        self._product_id = product_id
        self._timeout_ms = timeout_ms
        self._device = None
        self._backend: str = ""
        self._connected = False
        self._lock = threading.RLock()
        self._device_info = DeviceInfo(vendor_id=vendor_id, product_id=product_id)

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def device_info(self) -> DeviceInfo:
        return self._device_info

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms

    def open(self) -> DeviceInfo:
        """Open a connection to the power supply, trying hidapi first, then pyusb.

        Returns:
            DeviceInfo with USB descriptor information.

        Raises:
            ConnectionError: If the device cannot be found or opened.
        """
        try:
            return self._open_hidapi()
        except Exception as e:
            logger.debug("hidapi backend failed: %s, trying pyusb", e)

        try:
            return self._open_pyusb()
        except Exception as e:
            raise ConnectionError(
                f"Could not connect to power supply "
                f"({self._vendor_id:#06x}:{self._product_id:#06x}). "
                f"Ensure the device is connected and you have permissions. "
                f"Last error: {e}"
            ) from e

    def _open_hidapi(self) -> DeviceInfo:
        """Open using the hidapi library."""
        import hid

        device = hid.device()
        device.open(self._vendor_id, self._product_id)
        device.set_nonblocking(False)

        self._device = device
        self._backend = "hidapi"
        self._connected = True
        self._device_info = DeviceInfo(
            vendor_id=self._vendor_id,
            product_id=self._product_id,
            manufacturer=device.get_manufacturer_string() or "",
            product=device.get_product_string() or "",
        )

        logger.info(
            "Connected via hidapi: %04x:%04x",
            self._vendor_id,
            self._product_id,
        )
        return self._device_info

    def _open_pyusb(self) -> DeviceInfo:
        """Open using pyusb + libusb."""
        import usb.core
        import usb.util

        dev = usb.core.find(idVendor=self._vendor_id, idProduct=self._product_id)
        if dev is None:
            raise ConnectionError("Device not found via pyusb")

        if dev.is_kernel_driver_active(HID_INTERFACE):
            dev.detach_kernel_driver(HID_INTERFACE)

        usb.util.claim_interface(dev, HID_INTERFACE)

        self._device = dev
        self._backend = "pyusb"
        self._connected = True
        self._device_info = DeviceInfo(
            vendor_id=self._vendor_id,
            product_id=self._product_id,
            manufacturer=usb.util.get_string(dev, dev.iManufacturer) or "",
            product=usb.util.get_string(dev, dev.iProduct) or "",
        )

        logger.info(
            "Connected via pyusb: %04x:%04x",
            self._vendor_id,
            self._product_id,
        )
        return self._device_info

    def close(self) -> None:
        """Close the USB connection."""
        if not self._connected:
            return

        with self._lock:
            try:
                if self._backend == "hidapi":
                    self._device.close()
                elif self._backend == "pyusb":
                    import usb.util
                    usb.util.release_interface(self._device, HID_INTERFACE)
                    usb.util.dispose_resources(self._device)
            except Exception as e:
                logger.warning("Error closing device: %s", e)
            finally:
                self._device = None
                self._connected = False
                logger.info("Disconnected")

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        """Hold the device lock for the duration of the block.

        Raises:
            DeviceBusyError: If another thread holds the lock.
        """
        if not self._lock.acquire(blocking=False):
            raise DeviceBusyError("Device is busy with another request")
        try:
            yield
        finally:
            self._lock.release()

    def write(self, data: bytes) -> int:
        """Write a 64-byte report to the device.

        Only the pyusb backend bounds the write by ``timeout_ms``. hidapi's
        ``write`` takes no timeout and blocks until the report is queued;
        reads are bounded on both backends.

        Raises:
            ConnectionError: If not connected.
            ValueError: If the report has the wrong size.
            TransportError: If the write fails or is short.
        """
        if not self._connected:
            raise ConnectionError("Not connected to device")

        if len(data) != REPORT_SIZE:
            raise ValueError(
                f"HID report must be {REPORT_SIZE} bytes, got {len(data)}"
            )

        try:
            if self._backend == "hidapi":
                written = self._device.write(bytes([HID_REPORT_ID]) + data)
                if written >= 0:
                    written = min(written, REPORT_SIZE)
            elif self._backend == "pyusb":
                written = self._device.write(EP_OUT, data, timeout=self._timeout_ms)
            else:
                raise RuntimeError(f"Unknown backend: {self._backend}")
        except (OSError, ValueError) as e:
            raise TransportError(f"Failed to send request: {e}") from e

        if written < REPORT_SIZE:
            raise TransportError(f"Failed to send request (status {written})")
        return written

    def read(self) -> bytes:
        """Read a 64-byte report from the device.

        Raises:
            ConnectionError: If not connected.
            TransportError: If the read fails or times out.
        """
        if not self._connected:
            raise ConnectionError("Not connected to device")

        try:
            if self._backend == "hidapi":
                data = self._device.read(REPORT_SIZE, self._timeout_ms)
            elif self._backend == "pyusb":
                data = self._device.read(EP_IN, REPORT_SIZE, timeout=self._timeout_ms)
            else:
                raise RuntimeError(f"Unknown backend: {self._backend}")
        except (OSError, ValueError) as e:
            raise TransportError(f"Failed to get response: {e}") from e

        if not data:
            raise TransportError(
                f"No response within {self._timeout_ms} ms"
            )
        response = bytearray(REPORT_SIZE)
        response[: len(data)] = bytes(data)[:REPORT_SIZE]
        return bytes(response)

    def send_recv(self, data: bytes) -> bytes:
        """Send one report and return the device's 64-byte response.

        Raises:
            DeviceBusyError: If another exchange is in progress.
            TransportError: If either direction fails.
        """
        with self.exclusive():
            self.write(data)
            return self.read()
