"""Read-only telemetry for Corsair RMi/HXi power supplies over USB HID."""

from .device import PowerSupply
from .errors import (
    DeviceBusyError,
    ProtocolDesyncError,
    PSUError,
    TransportError,
    UnsupportedSensorError,
)
from .sensors import Category, SensorDescriptor, SensorRegistry
