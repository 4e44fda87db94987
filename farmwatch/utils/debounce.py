"""
Async debouncing for caller-side request bursts.

A dashboard toggling devices quickly should issue one fetch for the last
selection, not one per toggle. This is a caller concern and deliberately lives
outside the request coordinator.
"""

from __future__ import annotations

import asyncio
import logging

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.3


class Debouncer:
    """Coalesce bursts of calls so only the last one in a quiet period proceeds."""

    def __init__(self, delay_seconds: float = DEFAULT_DEBOUNCE_SECONDS) -> None:
        self.delay = max(0.0, delay_seconds)
        self._generation = 0
        self._waiting = 0

    async def wait(self) -> bool:
        """
        Sleep out the quiet period.

        Returns:
            True if no newer call or ``cancel()`` arrived meanwhile, False otherwise
        """
        self._generation += 1
        generation = self._generation
        self._waiting += 1
        try:
            await asyncio.sleep(self.delay)
        finally:
            self._waiting -= 1
        return generation == self._generation

    def cancel(self) -> None:
        """Supersede every pending ``wait()`` so it returns False."""
        if self._waiting:
            logger.debug("Debounced call superseded")
        self._generation += 1
