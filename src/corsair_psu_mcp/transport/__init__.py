"""USB transport for the power supply."""

from .usb_connection import DeviceInfo, USBConnection
