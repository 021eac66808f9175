"""Public entry point to the user timers — wires store, scheduler, persistence and rehydration together."""

from PySide6.QtCore import QObject

from ut.common.logger import log
from ut.core.config import load_settings
from ut.core.rehydration import rehydrate_all, rehydrate_one
from ut.core.scheduler import TickScheduler
from ut.core.storage import TimerPersistence
from ut.core.store import TimerStore
from ut.core.transitions import Discard, Reset, Start, Stop, derived_total
from ut.util.misc import now_ms


# Identifiers are integers. Numeric strings are accepted the way they arrive from storage keys or the command line,
# anything else is rejected so "7" and 7 can never become two different timers.
def user_key(user_id):
    if isinstance(user_id, bool):
        raise TypeError(f"Timer identifiers must be integers, got {user_id!r}")
    if isinstance(user_id, int):
        return user_id
    if isinstance(user_id, str):
        try:
            return int(user_id.strip())
        except ValueError:
            raise ValueError(f"Timer identifier {user_id!r} is not an integer") from None
    raise TypeError(f"Timer identifiers must be integers, got {type(user_id).__name__}")


class TimersFacade(QObject):
    """Start, stop and observe per-user timers.

    Rehydration from the persisted snapshot happens exactly once.  Call
    ``initialize_all()`` at startup; if a timer operation arrives first, the
    facade runs it on the spot so a fresh start can never race a stale
    snapshot.
    """

    def __init__(self, persistence=None, clock=now_ms, settings=None, parent=None):
        super().__init__(parent)
        settings = settings if settings is not None else load_settings()
        self.clock = clock
        self.persistence = persistence if persistence is not None else TimerPersistence(key=settings["storage_key"])
        self.store = TimerStore(self.persistence, strict=settings["strict_transitions"], parent=self)
        self.scheduler = TickScheduler(self.store, clock=clock, interval_ms=settings["tick_interval_ms"], parent=self)
        self._initialized = False

    @property
    def initialized(self):
        return self._initialized

    def initialize_all(self):
        if self._initialized:
            log.debug("Timers already rehydrated, skipping")
            return list(self.scheduler.active_ids)
        self._initialized = True
        running = rehydrate_all(self.store, self.persistence, self.clock)
        self.scheduler.attach_running()
        return running

    def initialize(self, user_id):
        user_id = user_key(user_id)
        self._ensure_initialized()
        record = rehydrate_one(self.store, self.persistence, user_id, self.clock)
        if record.is_running:
            self.scheduler.ensure(user_id)
        return record

    def _ensure_initialized(self):
        if not self._initialized:
            log.info("Timer operation requested before rehydration, rehydrating first")
            self.initialize_all()

    #region === Commands ===

    def start(self, user_id):
        user_id = user_key(user_id)
        self._ensure_initialized()
        log.info(f"Starting timer {user_id}")
        self.store.dispatch(Start(user_id, self.clock()))

    def stop(self, user_id):
        user_id = user_key(user_id)
        self._ensure_initialized()
        log.info(f"Stopping timer {user_id}")
        self.store.dispatch(Stop(user_id, self.clock()))

    def reset(self, user_id):
        user_id = user_key(user_id)
        self._ensure_initialized()
        log.info(f"Resetting timer {user_id}")
        self.store.dispatch(Reset(user_id))

    # Drops the identifier's record completely, persisted snapshot included.
    def forget(self, user_id):
        user_id = user_key(user_id)
        self._ensure_initialized()
        log.info(f"Forgetting timer {user_id}")
        self.store.dispatch(Discard(user_id))

    #endregion === Commands ===

    #region === Observables ===

    def get_timer(self, user_id):
        user_id = user_key(user_id)
        return self.store.select_timer(user_id)

    def get_all_timers(self):
        return self.store.select_all()

    def total(self, user_id):
        user_id = user_key(user_id)
        return derived_total(self.store.mapping.get(user_id), self.clock())

    #endregion === Observables ===

    def shutdown(self):
        self.scheduler.shutdown()
        log.info("Timers shut down")
