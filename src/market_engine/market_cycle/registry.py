"""Current market cycle registry.

The current cycle is a single stored value, changed only by an explicit
rep action (set or advance). Nothing here infers a cycle from the clock.
"""

from __future__ import annotations

import logging

from ...common.errors import InvalidMarketCycleError
from ...common.models import MarketCycle, MarketMonth, utcnow
from ..common.config import Config
from ..database.connection import get_connection, transaction
from ..database.models import read_current_cycle, write_current_cycle

logger = logging.getLogger(__name__)


class MarketCycleRegistry:
    """Read and change the process-wide current market cycle.

    Usage:
        registry = MarketCycleRegistry(config)
        registry.set_current(2026, "January")
        registry.advance()  # -> June 2026
    """

    def __init__(self, config: Config | None = None) -> None:
        self.config = config or Config()

    def get_current(self) -> MarketCycle | None:
        conn = get_connection(self.config)
        try:
            return read_current_cycle(conn)
        finally:
            conn.close()

    def set_current(self, year: int | str, month: str | MarketMonth) -> MarketCycle:
        """Store a new current cycle.

        Raises:
            InvalidMarketCycleError: month is not January/June or year is out of range.
        """
        cycle = MarketCycle.of(year, month)
        with transaction(self.config) as conn:
            previous = read_current_cycle(conn)
            write_current_cycle(conn, cycle, utcnow())

        logger.info(
            "Current market cycle set to %s (was %s)",
            cycle.label, previous.label if previous else "unset",
        )
        return cycle

    def advance(self) -> MarketCycle:
        """Move to the next cycle: January -> June, June -> next January.

        Raises:
            InvalidMarketCycleError: no current cycle has been set yet.
        """
        with transaction(self.config) as conn:
            current = read_current_cycle(conn)
            if current is None:
                raise InvalidMarketCycleError("No current market cycle to advance from")
            cycle = current.next()
            write_current_cycle(conn, cycle, utcnow())

        logger.info("Advanced market cycle %s -> %s", current.label, cycle.label)
        return cycle
