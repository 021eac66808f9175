from PySide6.QtCore import QObject, QTimer

from ut.common.logger import log
from ut.core.transitions import Tick, select_running_ids
from ut.util.misc import now_ms

TICK_INTERVAL_MS = 1000

# Drives one repeating QTimer per running identifier. Streams follow the store: a record turning running gets a
# stream, a record turning idle (or disappearing) loses it in the same signal delivery.
class TickScheduler(QObject):

    def __init__(self, store, clock=now_ms, interval_ms=TICK_INTERVAL_MS, parent=None):
        super().__init__(parent)
        self.store = store
        self.clock = clock
        self.interval_ms = interval_ms
        self._streams = {}  # user_id -> QTimer
        store.timer_changed.connect(self._on_timer_changed)

    @property
    def active_ids(self):
        return sorted(self._streams)

    def is_active(self, user_id):
        return user_id in self._streams

    # Attaches a stream for user_id unless one is already live. Returns True if a new stream was created.
    def ensure(self, user_id):
        if user_id in self._streams:
            return False
        timer = QTimer(self)
        timer.setInterval(self.interval_ms)
        timer.timeout.connect(lambda uid=user_id: self._fire(uid))
        self._streams[user_id] = timer
        timer.start()
        log.debug(f"Attached tick stream for timer {user_id} every {self.interval_ms} ms")
        return True

    def cancel(self, user_id):
        timer = self._streams.pop(user_id, None)
        if timer is None:
            return False
        timer.stop()
        timer.deleteLater()
        log.debug(f"Cancelled tick stream for timer {user_id}")
        return True

    # Makes sure every running record in the store has its stream.
    def attach_running(self):
        for user_id in select_running_ids(self.store.mapping):
            self.ensure(user_id)

    def shutdown(self):
        for user_id in list(self._streams):
            self.cancel(user_id)

    def _fire(self, user_id):
        # A timeout already queued when the stream got cancelled
        if user_id not in self._streams:
            return
        record = self.store.mapping.get(user_id)
        if record is None or not record.is_running:
            self.cancel(user_id)
            return
        self.store.dispatch(Tick(user_id, self.clock()))

    def _on_timer_changed(self, user_id, record):
        if record is not None and record.is_running:
            self.ensure(user_id)
        else:
            self.cancel(user_id)
