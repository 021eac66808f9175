import json
import os
from pathlib import Path
from ut.common.logger import log
from ut.common.setup import PATHS
from ut.core.errors import PersistenceReadError, PersistenceWriteError
from ut.core.records import TimerRecord

#region === Key-value slots ===

DEFAULT_KEY = "timers_state"
STORAGE_PATH = PATHS.current / "storage.json"

# The durable key-value store the timer snapshot lives in. Values are always strings, keys are slot names.
class KeyValueStore:

    def get_item(self, key):
        raise NotImplementedError()

    def set_item(self, key, value):
        raise NotImplementedError()

    def remove_item(self, key):
        raise NotImplementedError()

# Plain dict-backed slot, for tests and for embedding without touching disk.
class MemoryStore(KeyValueStore):

    def __init__(self, items=None):
        self.items = dict(items or {})

    def get_item(self, key):
        return self.items.get(key)

    def set_item(self, key, value):
        self.items[key] = value

    def remove_item(self, key):
        self.items.pop(key, None)

# One JSON object on disk, key -> string value. Every write replaces the whole file atomically, so a crash mid-write
# leaves the previous file intact.
class JsonFileStore(KeyValueStore):

    def __init__(self, path=None):
        self.path = Path(path) if path is not None else STORAGE_PATH

    def _read_all(self):
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            items = json.load(f)
        if not isinstance(items, dict):
            raise PersistenceReadError(f"Expected a JSON object in '{self.path}', got {type(items).__name__}")
        return items

    def _write_all(self, items):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(items, f, indent=2)
        os.replace(tmp_path, self.path)

    def get_item(self, key):
        return self._read_all().get(key)

    def set_item(self, key, value):
        # An unreadable file gets replaced rather than blocking every future write.
        try:
            items = self._read_all()
        except (json.JSONDecodeError, PersistenceReadError, UnicodeDecodeError):
            log.warning(f"Overwriting unreadable storage file '{self.path}'", exc_info=True)
            items = {}
        items[key] = value
        self._write_all(items)

    def remove_item(self, key):
        # Nothing in an unreadable file can be trusted, so removing anything from it empties it.
        try:
            items = self._read_all()
        except (json.JSONDecodeError, PersistenceReadError, UnicodeDecodeError):
            log.warning(f"Emptying unreadable storage file '{self.path}'", exc_info=True)
            self._write_all({})
            return
        if key in items:
            del items[key]
            self._write_all(items)

#endregion === Key-value slots ===

#region === Timer snapshot (de)serialization ===

# Converts one record to its persisted shape. Idle records leave startTimestamp out entirely.
def encode_record(record):
    entry = {
        "accumulatedTime": record.accumulated_time,
        "isRunning": record.is_running,
    }
    if record.is_running:
        entry["startTimestamp"] = record.start_timestamp
    return entry

def encode_mapping(mapping):
    return json.dumps({str(uid): encode_record(record) for uid, record in mapping.items()}, sort_keys=True)

def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)

# Builds a record from one persisted entry, raising PersistenceReadError if it can't be trusted.
def decode_record(entry):
    if not isinstance(entry, dict):
        raise PersistenceReadError(f"Timer entry must be an object, got {type(entry).__name__}")
    accumulated = entry.get("accumulatedTime", 0)
    running = entry.get("isRunning", False)
    started = entry.get("startTimestamp")
    if not _is_int(accumulated) or accumulated < 0:
        raise PersistenceReadError(f"Invalid accumulatedTime {accumulated!r}")
    if not isinstance(running, bool):
        raise PersistenceReadError(f"Invalid isRunning {running!r}")
    if started is not None and not _is_int(started):
        raise PersistenceReadError(f"Invalid startTimestamp {started!r}")

    # A running entry with nothing to resume from is kept, but as idle.
    if running and started is None:
        log.warning(f"Timer entry {entry} is running without a startTimestamp, loading it as stopped")
        running = False
    return TimerRecord(accumulated, running, started if running else None)

# Parses a whole snapshot. Malformed entries are dropped one by one, a malformed document raises.
def decode_mapping(raw):
    try:
        document = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise PersistenceReadError(f"Timer snapshot is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise PersistenceReadError(f"Timer snapshot must be an object, got {type(document).__name__}")

    mapping = {}
    dropped = []
    for key, entry in document.items():
        try:
            mapping[int(key)] = decode_record(entry)
        except (ValueError, PersistenceReadError):
            dropped.append(key)
    if dropped:
        log.warning(f"Dropped malformed timer entries while loading: {', '.join(sorted(dropped))}")
    return mapping

#endregion === Timer snapshot (de)serialization ===

#region === Gateway ===

# Reads and writes the full timer mapping under a single key of a KeyValueStore.
class TimerPersistence:

    def __init__(self, store=None, key=DEFAULT_KEY):
        self.store = store if store is not None else JsonFileStore()
        self.key = key

    # Returns the persisted mapping, or an empty one if nothing usable is stored. Never raises.
    def load(self):
        try:
            raw = self.store.get_item(self.key)
            if raw is None:
                log.info(f"No persisted timers under '{self.key}', starting empty.")
                return {}
            mapping = decode_mapping(raw)
            log.info(f"Loaded {len(mapping)} persisted timer(s) from '{self.key}'.")
            return mapping
        except (PersistenceReadError, OSError, ValueError):
            log.warning(f"Ran into an error while loading timers from '{self.key}', falling back to an empty mapping.", exc_info=True)
            return {}

    # Writes the whole mapping. Raises PersistenceWriteError if the slot can't take it.
    def save(self, mapping):
        try:
            self.store.set_item(self.key, encode_mapping(mapping))
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceWriteError(f"Failed to save {len(mapping)} timer(s) under '{self.key}': {e}") from e
        log.debug(f"Saved {len(mapping)} timer(s) under '{self.key}'")

    # Process-level data clearing.
    def clear(self):
        try:
            self.store.remove_item(self.key)
        except (OSError, ValueError) as e:
            raise PersistenceWriteError(f"Failed to clear timers under '{self.key}': {e}") from e
        log.info(f"Cleared persisted timers under '{self.key}'")

#endregion === Gateway ===
