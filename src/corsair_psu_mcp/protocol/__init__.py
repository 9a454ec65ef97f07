"""Protocol layer: framing, opcodes, LINEAR11 decoding, exchange and rail selection."""

from .framing import build_frame, parse_frame
from .commands import Address, Command, Rail, build_command
from .engine import ProtocolEngine
from .linear import decode_linear11
from .rails import RailSelector
