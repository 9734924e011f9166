"""
Session-scoped holder of the last fetched instance snapshot.
"""
from typing import Iterable, Optional, Tuple
import logging

from .models import InstanceRecord, sort_records


logger = logging.getLogger(__name__)


class InstanceStore:
    """Last authoritative instance list plus fetch status.

    The record tuple is replaced wholesale on each successful fetch and is
    never mutated in place, so readers always see a complete snapshot.
    """

    def __init__(self):
        self._records: Tuple[InstanceRecord, ...] = ()
        self._error: Optional[str] = None
        self._in_flight = 0
        self._initial_load_complete = False

    @property
    def records(self) -> Tuple[InstanceRecord, ...]:
        return self._records

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    @property
    def initial_load_complete(self) -> bool:
        """True once the first fetch has finished, successfully or not. Never reset."""
        return self._initial_load_complete

    def replace(self, records: Iterable[InstanceRecord]) -> None:
        """Swap in a new snapshot and clear any previous error."""
        self._records = sort_records(records)
        self._error = None
        logger.info(f"Instance snapshot replaced: {len(self._records)} instances")

    def set_error(self, message: str) -> None:
        """Record a human-readable error; the current snapshot is kept."""
        self._error = message

    def clear_error(self) -> None:
        self._error = None

    def begin_fetch(self) -> None:
        self._in_flight += 1

    def end_fetch(self) -> None:
        self._in_flight = max(0, self._in_flight - 1)
        self._initial_load_complete = True
