class TimerError(Exception):
    """
    Base exception class for errors raised by the user timer subsystem.
    """


class PersistenceReadError(TimerError):
    """
    Raised when the persisted timer snapshot is unavailable or malformed. Never leaves the persistence layer, the
    loader substitutes an empty mapping.
    """


class PersistenceWriteError(TimerError):
    """
    Raised when the timer snapshot cannot be written. In-memory state stays correct, only durability is degraded.
    """


class InvalidTransition(TimerError):
    """
    Raised when a command would break the record invariants, or when a record already breaks them. Always a bug.
    """
