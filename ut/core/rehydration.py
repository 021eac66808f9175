from ut.common.logger import log
from ut.core.transitions import Initialize, Rehydrate, select_running_ids
from ut.util.misc import now_ms

# Loads the persisted snapshot and rolls every entry forward to `now` in one batch. Identifiers already held in
# memory are left alone. Returns the identifiers that are running afterwards.
def rehydrate_all(store, persistence, clock=now_ms):
    persisted = persistence.load()
    now = clock()
    commands = [
        Rehydrate(user_id, record, now)
        for user_id, record in sorted(persisted.items())
        if user_id not in store.mapping
    ]
    if commands:
        store.dispatch_all(commands)

    running = select_running_ids(store.mapping)
    log.info(f"Rehydrated {len(commands)} timer(s), {len(running)} running: {running}")
    return running

# Single-identifier version. A snapshot entry gets rehydrated, no entry at all gets a fresh idle record.
def rehydrate_one(store, persistence, user_id, clock=now_ms):
    if user_id in store.mapping:
        return store.mapping[user_id]

    record = persistence.load().get(user_id)
    if record is None:
        store.dispatch(Initialize(user_id))
    else:
        store.dispatch(Rehydrate(user_id, record, clock()))
        log.info(f"Rehydrated timer {user_id}: {store.mapping[user_id]!r}")
    return store.mapping[user_id]
