"""Request/response exchange with opcode-echo checking and resync.

Every response echoes the opcode it answers. When the echo does not match,
the device has fallen out of step with the host: one identification
handshake brings it back, after which the original request is sent once
more. A mismatch on the handshake or on the retry is reported to the
caller instead of looping.
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from typing import Protocol

from ..errors import ProtocolDesyncError, TransportError
from .commands import Command, build_command, build_handshake
from .framing import PAYLOAD_OFFSET, REPORT_SIZE, Frame, parse_frame

logger = logging.getLogger(__name__)

MAX_PAYLOAD = REPORT_SIZE - PAYLOAD_OFFSET


class Transport(Protocol):
    """What the engine needs from a connection.

    ``send_recv`` performs one locked round trip. ``exclusive`` holds the
    same lock across several round trips and raises ``DeviceBusyError``
    instead of waiting when another caller owns it.
    """

    def send_recv(self, data: bytes) -> bytes:
        ...

    def exclusive(self) -> AbstractContextManager[None]:
        ...


class ProtocolEngine:
    """Builds command frames and drives a transport."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    @property
    def transport(self) -> Transport:
        return self._transport

    def _round_trip(self, request: bytes) -> Frame:
        logger.debug(
            "-> addr=0x%02X op=0x%02X data=0x%02X", request[0], request[1], request[2]
        )
        response = parse_frame(self._transport.send_recv(request))
        if response is None:
            raise TransportError("Truncated response from device")
        logger.debug("<- %r", response)
        return response

    def _handshake(self) -> None:
        response = self._round_trip(build_handshake())
        if response.opcode != Command.HANDSHAKE:
            raise ProtocolDesyncError(Command.HANDSHAKE, response.opcode)

    def handshake(self) -> None:
        """Send the identification command and discard the answer.

        Raises:
            ProtocolDesyncError: If the device does not echo the handshake.
        """
        with self._transport.exclusive():
            self._handshake()

    def exchange(
        self,
        address: int,
        opcode: int,
        opdata: int = 0,
        width: int = MAX_PAYLOAD,
    ) -> bytes:
        """Send one command and return ``width`` bytes of its response payload.

        Args:
            address: Address/class selector byte.
            opcode: Command identifier; must be echoed by the response.
            opdata: Command parameter.
            width: Number of payload bytes to return.
        """
        return self.exchange_frame(build_command(opcode, address, opdata), width)

    def exchange_frame(self, request: bytes, width: int = MAX_PAYLOAD) -> bytes:
        """Send a prebuilt command frame and return ``width`` payload bytes.

        Costs one round trip normally, three when a resync was needed.
        The device lock is held across all of them.

        Raises:
            DeviceBusyError: If the device is in use by another caller.
            TransportError: If a send or receive fails.
            ProtocolDesyncError: If the echo is still wrong after a resync.
        """
        if not 0 <= width <= MAX_PAYLOAD:
            raise ValueError(f"Width must be 0-{MAX_PAYLOAD}, got {width}")
        opcode = request[1]

        with self._transport.exclusive():
            response = self._round_trip(request)
            if response.opcode != opcode:
                logger.warning(
                    "Opcode mismatch (sent 0x%02X, got 0x%02X), resyncing",
                    opcode,
                    response.opcode,
                )
                self._handshake()
                response = self._round_trip(request)
                if response.opcode != opcode:
                    raise ProtocolDesyncError(opcode, response.opcode)

        return response.payload_slice(width)
