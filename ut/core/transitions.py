"""Timer state machine — named commands and the pure reducer that applies them.

Every function here is pure: it takes the current record (or mapping) and a
command, and returns the next one without touching its inputs.  Wall-clock
time travels inside the commands, so nothing in this module reads a clock.
"""

from dataclasses import dataclass
from typing import Optional

from ut.common.logger import log
from ut.core.errors import InvalidTransition
from ut.core.records import IDLE, TimerMapping, TimerRecord


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Start:
    user_id: int
    now: int

@dataclass(frozen=True)
class Stop:
    user_id: int
    now: int

@dataclass(frozen=True)
class Reset:
    user_id: int

@dataclass(frozen=True)
class Tick:
    user_id: int
    now: int

@dataclass(frozen=True)
class Rehydrate:
    user_id: int
    record: TimerRecord
    now: int

# Creates a default idle record if the identifier has none yet.
@dataclass(frozen=True)
class Initialize:
    user_id: int

# Removes the identifier's record entirely (reset-to-absence).
@dataclass(frozen=True)
class Discard:
    user_id: int


# ---------------------------------------------------------------------------
# Per-record transitions
# ---------------------------------------------------------------------------

def _check(record):
    # Records built through TimerRecord() can't break this, but one forced together with object.__setattr__ can.
    if record.is_running and record.start_timestamp is None:
        raise InvalidTransition(f"record {record!r} is marked running without a start_timestamp")
    return record

# Idle -> Running. Already running is a no-op so the current segment's start is never lost.
def start(record: Optional[TimerRecord], now: int) -> TimerRecord:
    record = _check(record or IDLE)
    if record.is_running:
        return record
    return TimerRecord(record.accumulated_time, True, now)

# Running -> Idle, banking the current segment. Idle stays idle.
def stop(record: Optional[TimerRecord], now: int) -> TimerRecord:
    record = _check(record or IDLE)
    if not record.is_running:
        return record
    elapsed = max(0, now - record.start_timestamp)
    return TimerRecord(record.accumulated_time + elapsed, False, None)

def reset(record: Optional[TimerRecord] = None) -> TimerRecord:
    return IDLE

# Ticks never change the committed record. Returns the derived total, or None if the timer isn't running (which
# means the tick is stale and must be dropped).
def tick(record: Optional[TimerRecord], now: int) -> Optional[int]:
    if record is None or not _check(record).is_running:
        return None
    return record.total(now)

# Rolls a persisted running record forward to `now`: the time that passed while nobody was watching is banked and
# a fresh segment starts at `now`. Idle records are adopted unchanged.
def rehydrate(record: TimerRecord, now: int) -> TimerRecord:
    record = _check(record)
    if not record.is_running:
        return record
    caught_up = record.accumulated_time + max(0, now - record.start_timestamp)
    return TimerRecord(caught_up, True, now)


# ---------------------------------------------------------------------------
# Reducer
# ---------------------------------------------------------------------------

def _with(mapping, user_id, record):
    if user_id in mapping and mapping[user_id] == record:
        return mapping
    updated = dict(mapping)
    updated[user_id] = record
    return updated

# Applies one command to the mapping and returns the next mapping. The input mapping is never mutated, and an
# unchanged mapping is returned as the very same object so callers can tell "nothing committed" by identity.
def reduce(mapping: TimerMapping, command) -> TimerMapping:
    current = mapping.get(command.user_id)

    if isinstance(command, Start):
        return _with(mapping, command.user_id, start(current, command.now))
    if isinstance(command, Stop):
        if current is None:
            log.debug(f"Ignoring stop for unknown timer {command.user_id}")
            return mapping
        return _with(mapping, command.user_id, stop(current, command.now))
    if isinstance(command, Reset):
        return _with(mapping, command.user_id, reset(current))
    if isinstance(command, Tick):
        tick(current, command.now)
        return mapping
    if isinstance(command, Rehydrate):
        return _with(mapping, command.user_id, rehydrate(command.record, command.now))
    if isinstance(command, Initialize):
        if current is not None:
            return mapping
        return _with(mapping, command.user_id, IDLE)
    if isinstance(command, Discard):
        if current is None:
            return mapping
        updated = dict(mapping)
        del updated[command.user_id]
        return updated
    raise InvalidTransition(f"Unknown timer command {command!r}")


# ---------------------------------------------------------------------------
# Projections
# ---------------------------------------------------------------------------

def select_timer(mapping: TimerMapping, user_id: int) -> Optional[TimerRecord]:
    return mapping.get(user_id)

def select_all_timers(mapping: TimerMapping) -> TimerMapping:
    return dict(mapping)

def select_running_ids(mapping: TimerMapping):
    return sorted(uid for uid, record in mapping.items() if record.is_running)

def derived_total(record: Optional[TimerRecord], now: int) -> int:
    return 0 if record is None else record.total(now)
