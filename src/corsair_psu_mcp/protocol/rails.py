"""Output rail selection.

The rail voltage, current and power opcodes are shared by all three
rails; the device answers for whichever rail it was last told to address.
"""

from __future__ import annotations

import logging

from ..errors import PSUError
from .commands import Rail, build_select_rail
from .engine import ProtocolEngine

logger = logging.getLogger(__name__)


class RailSelector:
    """Issues rail-select commands and remembers the last rail selected.

    ``state`` is informational only. Other programs can talk to the same
    device, so every rail-scoped read selects its rail again. After a
    failed select the device rail is unknown and ``state`` is ``None``.
    """

    def __init__(self, engine: ProtocolEngine) -> None:
        self._engine = engine
        self._state: Rail | None = None

    @property
    def state(self) -> Rail | None:
        return self._state

    def reset(self) -> None:
        self._state = None

    def select(self, rail: Rail) -> None:
        rail = Rail(rail)
        try:
            self._engine.exchange_frame(build_select_rail(rail), width=0)
        except PSUError:
            self._state = None
            raise
        self._state = rail
        logger.debug("Selected rail %s", rail.name)
