"""MCP server entry point for Corsair RMi/HXi power supplies.

Exposes the sensor table and live readings as tools and resources via
the Model Context Protocol using the official Python MCP SDK with stdio
transport. All tools are read-only.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .device import KNOWN_MODELS, PowerSupply
from .errors import PSUError
from .sensors import SENSOR_TABLE, Category, SensorReading
from .transport.usb_connection import PRODUCT_ID, VENDOR_ID, USBConnection

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "corsair-psu",
    instructions="MCP server for Corsair RMi/HXi power supply telemetry",
)

# Global device state
_device: PowerSupply | None = None


def _get_device() -> PowerSupply:
    """Get the attached power supply, raising if not connected."""
    if _device is None or not _device.attached:
        raise RuntimeError(
            "Not connected to device. Use the 'connect' tool first."
        )
    return _device


def _error(e: PSUError) -> dict[str, Any]:
    return {"error": str(e), "code": e.code}


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(product_id: int = PRODUCT_ID) -> dict[str, Any]:
    """Open the USB connection to a Corsair power supply.

    Sends the identification handshake once the device is open.

    Args:
        product_id: USB product ID (default 0x1C0A, RM650i).
    """
    global _device
    if _device is not None and _device.attached:
        return {
            "connected": True,
            "message": "Already connected",
            "model": _device.device_info.model,
        }

    if product_id not in KNOWN_MODELS:
        return {
            "error": f"Unsupported product ID {product_id:#06x}",
            "supported": {f"{pid:#06x}": name for pid, name in KNOWN_MODELS.items()},
        }

    device = PowerSupply(USBConnection(VENDOR_ID, product_id))
    try:
        info = device.attach()
    except PSUError as e:
        device.detach()
        return _error(e)

    _device = device
    return {
        "connected": True,
        "model": info.model,
        "manufacturer": info.manufacturer,
        "product": info.product,
    }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the USB connection to the power supply."""
    global _device
    if _device is None:
        return {"disconnected": True}
    _device.detach()
    _device = None
    return {"disconnected": True}


@mcp.tool()
def get_device_info() -> dict[str, Any]:
    """Read the name, vendor and product strings reported by the device."""
    device = _get_device()
    result: dict[str, Any] = {"model": device.device_info.model}
    for descriptor in device.sensors(Category.INFO):
        key = descriptor.label.lower()
        try:
            result[key] = device.read(descriptor.category, descriptor.channel)
        except PSUError as e:
            result[key] = None
            result.setdefault("errors", {})[key] = str(e)
    return result


# ─── SENSOR TOOLS ─────────────────────────────────────────────────────

@mcp.tool()
def list_sensors(category: str | None = None) -> dict[str, Any]:
    """List available sensors with their labels and units.

    Args:
        category: Optional filter (temperature, fan, voltage, current,
                  power, uptime, mode, info).
    """
    if category is not None and category not in {c.value for c in Category}:
        return {"error": f"Unknown category '{category}'. Valid: {[c.value for c in Category]}"}
    device = _get_device()
    return {"sensors": [d.to_dict() for d in device.sensors(category)]}


@mcp.tool()
def read_sensor(category: str, channel: int) -> dict[str, Any]:
    """Read a single sensor.

    Args:
        category: Sensor category, e.g. 'temperature' or 'voltage'.
        channel: Channel index within the category, starting at 0.
    """
    device = _get_device()
    try:
        descriptor = device.registry.descriptor(category, channel)
        value = device.read(category, channel)
    except PSUError as e:
        return _error(e)

    return SensorReading(descriptor, value).to_dict()


@mcp.tool()
def read_all_sensors() -> dict[str, Any]:
    """Read every sensor once. Failed sensors carry an error instead of a value."""
    device = _get_device()
    return {"readings": [r.to_dict() for r in device.read_all()]}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("corsair-psu://sensors")
def resource_sensors() -> str:
    """The static sensor table."""
    return json.dumps({"sensors": [d.to_dict() for d in SENSOR_TABLE]}, ensure_ascii=False)


@mcp.resource("corsair-psu://models")
def resource_models() -> str:
    """Supported power supply models by USB product ID."""
    return json.dumps({f"{pid:#06x}": name for pid, name in KNOWN_MODELS.items()})


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
