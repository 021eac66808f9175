"""Central timer store — owns the committed mapping and applies commands in order.

All mutation goes through ``dispatch``.  A command that changes the mapping is
persisted first and only then announced through the store's signals, so every
observer sees a state that is already durable (or logged as not durable).
"""

from PySide6.QtCore import QObject, Signal

from ut.common.logger import log
from ut.core.errors import InvalidTransition, PersistenceWriteError
from ut.core.transitions import Tick, reduce, select_all_timers, select_timer, tick


class Selection(QObject):
    """A memoized projection over the store's mapping.

    ``value`` always holds the projection of the latest committed mapping,
    and ``changed`` fires only when that value actually differs from the
    previous one.
    """

    changed = Signal(object)

    def __init__(self, store, key, projector):
        super().__init__(store)
        self._store = store
        self.key = key
        self._projector = projector
        self._value = projector(store.mapping)
        store.timers_changed.connect(self._refresh)

    @property
    def value(self):
        return self._value

    def _refresh(self, mapping):
        value = self._projector(mapping)
        if value != self._value:
            self._value = value
            self.changed.emit(value)

    def dispose(self):
        self._store._selections.pop(self.key, None)
        self._store.timers_changed.disconnect(self._refresh)
        self.deleteLater()


class TimerStore(QObject):

    # (user_id, record or None) after a committed change to that identifier
    timer_changed = Signal(object, object)
    # full mapping copy after any committed change
    timers_changed = Signal(object)
    # (user_id, derived total in ms) for every accepted tick
    ticked = Signal(object, object)

    def __init__(self, persistence, strict=True, parent=None):
        super().__init__(parent)
        self.persistence = persistence
        self.strict = strict
        self._mapping = {}
        self._selections = {}  # projection key -> Selection

    @property
    def mapping(self):
        return self._mapping

    def _reduce(self, mapping, command):
        try:
            return reduce(mapping, command)
        except InvalidTransition:
            if self.strict:
                raise
            log.exception(f"Dropping command {command!r} that breaks timer invariants")
            return mapping

    def _persist(self):
        try:
            self.persistence.save(self._mapping)
        except PersistenceWriteError:
            log.error("Timer state is only held in memory until the next successful save", exc_info=True)

    def _commit(self, updated, user_ids):
        previous = self._mapping
        self._mapping = updated
        self._persist()
        for user_id in user_ids:
            if previous.get(user_id) != updated.get(user_id):
                self.timer_changed.emit(user_id, updated.get(user_id))
        self.timers_changed.emit(dict(updated))

    # Applies one command. Returns True if it changed the committed mapping.
    def dispatch(self, command):
        if isinstance(command, Tick):
            return self._tick(command)

        updated = self._reduce(self._mapping, command)
        if updated is self._mapping:
            log.debug(f"Command {command!r} left timers unchanged")
            return False
        log.debug(f"Applied {command!r} -> {updated.get(command.user_id)!r}")
        self._commit(updated, [command.user_id])
        return True

    # Applies a batch of commands and persists once at the end, so the snapshot never holds a partial batch.
    def dispatch_all(self, commands):
        updated = self._mapping
        touched = []
        for command in commands:
            if isinstance(command, Tick):
                raise InvalidTransition("Ticks cannot be batched")
            updated = self._reduce(updated, command)
            touched.append(command.user_id)
        if updated is self._mapping:
            return False
        log.debug(f"Applied batch of {len(touched)} timer command(s)")
        self._commit(updated, list(dict.fromkeys(touched)))
        return True

    def _tick(self, command):
        record = self._mapping.get(command.user_id)
        try:
            total = tick(record, command.now)
        except InvalidTransition:
            if self.strict:
                raise
            log.exception(f"Dropping tick for broken timer record {record!r}")
            return False
        if total is None:
            log.debug(f"Dropped stale tick for timer {command.user_id}")
            return False
        self.ticked.emit(command.user_id, total)
        return False

    #region === Read projections ===

    # Returns the live Selection for key, building it from projector only the first time.
    def select(self, key, projector):
        selection = self._selections.get(key)
        if selection is None:
            selection = Selection(self, key, projector)
            self._selections[key] = selection
        return selection

    def select_timer(self, user_id):
        return self.select(("timer", user_id), lambda mapping: select_timer(mapping, user_id))

    def select_all(self):
        return self.select(("all",), select_all_timers)

    #endregion === Read projections ===
