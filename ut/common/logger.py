import logging
from pathlib import Path
from logging.handlers import RotatingFileHandler
from ut.common.setup import PATHS
from datetime import datetime

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s:%(filename)s:%(lineno)d] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Handlers are tagged "<logger>:<role>" so repeated get_logger() calls never stack duplicates.
def _attach(logger, role, make_handler, level, fmt):
    handler_name = f"{logger.name}:{role}"
    if any(h.get_name() == handler_name for h in logger.handlers):
        return
    handler = make_handler()
    handler.setLevel(level)
    handler.setFormatter(fmt)
    handler.set_name(handler_name)
    logger.addHandler(handler)

# Keeps only the newest `keep` per-run debug logs.
def _prune_runs(debug_dir, name, keep):
    runs = sorted(debug_dir.glob(f"{name}_*.log"), key=lambda p: p.stat().st_mtime, reverse=True)
    for run in runs[keep:]:
        try: run.unlink()
        except OSError: pass

def get_logger(
        name = "usertimers",
        level = logging.INFO,
        log_dir: Path | None = None,
        max_bytes = 5 * 1024 * 1024,
        backup_count = 5,
        persistent = True,
        console = False,
        historical_debugs: int = 10
) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.propagate = False
    logger.setLevel(level)

    log_dir = log_dir or PATHS.logs
    log_dir.mkdir(parents=True,exist_ok=True)
    fmt = logging.Formatter(LOG_FORMAT,LOG_DATE_FORMAT)

    # Rotating log that survives across runs
    if persistent:
        _attach(logger, "persistent", lambda: RotatingFileHandler(
            log_dir / f"{name}.log", maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8", delay=True,
        ), level, fmt)

    # Only the current run, overwritten at every start
    _attach(logger, "latest", lambda: logging.FileHandler(
        log_dir / "latest.log", mode="w", encoding="utf-8", delay=True,
    ), level, fmt)

    # Full DEBUG output of this run in its own file
    if historical_debugs > 0:
        debug_dir = log_dir / "debug"
        debug_dir.mkdir(parents=True,exist_ok=True)
        run_path = debug_dir / f"{name}_{datetime.now():%Y-%m-%d_%H-%M-%S}.log"
        _attach(logger, "historical_debug", lambda: logging.FileHandler(
            run_path, encoding="utf-8", delay=True,
        ), logging.DEBUG, fmt)
        _prune_runs(debug_dir, name, historical_debugs)

    if console:
        _attach(logger, "console", logging.StreamHandler, level, fmt)

    return logger

# Applies a level name from settings to the shared logger's handlers. The logger itself stays at DEBUG so the
# historical debug handler keeps receiving everything.
def set_level(level_name):
    level = logging.getLevelName(str(level_name).upper())
    if not isinstance(level, int):
        log.warning(f"Unknown log level '{level_name}', leaving handler levels unchanged")
        return
    for handler in log.handlers:
        if not handler.get_name().endswith(":historical_debug"):
            handler.setLevel(level)

log = get_logger(level=logging.DEBUG,console=False,historical_debugs=10)
log.info("=== INITIALIZED NEW SESSION ===")
