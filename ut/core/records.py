"""Timer records — pure data, no behavior beyond the derived total."""

from dataclasses import dataclass
from typing import Dict, Optional

from ut.core.errors import InvalidTransition


@dataclass(frozen=True)
class TimerRecord:
    """Elapsed-time state for one user identifier.

    ``accumulated_time`` is the banked running time in milliseconds, not
    counting the current run segment.  ``start_timestamp`` is the wall-clock
    millisecond at which the current run segment began and is set if and only
    if ``is_running``.
    """

    accumulated_time: int = 0
    is_running: bool = False
    start_timestamp: Optional[int] = None

    def __post_init__(self):
        if self.accumulated_time < 0:
            raise InvalidTransition(f"accumulated_time cannot be negative, got {self.accumulated_time}")
        if self.is_running and self.start_timestamp is None:
            raise InvalidTransition("running timer record has no start_timestamp")
        if not self.is_running and self.start_timestamp is not None:
            raise InvalidTransition("idle timer record carries a start_timestamp")

    def total(self, now):
        """Derived total at wall-clock ``now``, without banking anything."""
        if self.is_running:
            return self.accumulated_time + max(0, now - self.start_timestamp)
        return self.accumulated_time


IDLE = TimerRecord()

# user identifier -> record. Persisted as one value, never piecewise.
TimerMapping = Dict[int, TimerRecord]
