import logging
import os
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from lt.common.setup import PATHS

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s:%(filename)s:%(lineno)d] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# uvicorn logs under these names; the proxy routes them into its own files.
UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


# LOADTIMER_LOG_LEVEL=WARNING etc. overrides the level passed in code. Unknown names are ignored.
def _resolve_level(level):
    override = os.getenv("LOADTIMER_LOG_LEVEL")
    if override:
        named = logging.getLevelName(override.strip().upper())
        if isinstance(named, int):
            return named
    return level


# Adds a handler under a stable name, once. Calling get_logger() again for the same name never duplicates output.
def _attach(logger: logging.Logger, handler_name: str, build, level, fmt):
    if any(h.get_name() == handler_name for h in logger.handlers):
        return
    handler = build()
    handler.setLevel(level)
    handler.setFormatter(fmt)
    handler.set_name(handler_name)
    logger.addHandler(handler)


# Keeps only the newest `keep` per-run debug logs for this logger name.
def _prune_runs(folder: Path, name: str, keep: int):
    runs = sorted(folder.glob(f"{name}_*.log"), key=lambda p: p.stat().st_mtime, reverse=True)
    for run in runs[keep:]:
        try: run.unlink()
        except OSError: pass


# Builds (or returns the already-built) named logger. Every logger writes a rotating persistent log and a
# "<name>_latest.log" overwritten each start; per-run debug logs and console output are optional. The desktop app
# logs quietly to files, the proxy also logs to the console since uvicorn owns the terminal anyway.
def get_logger(
        name = "loadtimer",
        level = logging.INFO,
        log_dir: Path | None = None,
        max_bytes = 5 * 1024 * 1024,
        backup_count = 5,
        persistent = True,
        console = False,
        historical_debugs: int = 10
) -> logging.Logger:
    level = _resolve_level(level)
    logger = logging.getLogger(name)
    logger.propagate = False
    logger.setLevel(level)

    log_dir = log_dir or PATHS.logs
    log_dir.mkdir(parents=True,exist_ok=True)
    fmt = logging.Formatter(LOG_FORMAT,LOG_DATE_FORMAT)

    if persistent:
        _attach(logger, f"{name}:persistent", lambda: RotatingFileHandler(
            filename=log_dir / f"{name}.log",
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        ), level, fmt)

    _attach(logger, f"{name}:latest", lambda: logging.FileHandler(
        filename=log_dir / f"{name}_latest.log",
        mode="w",
        encoding="utf-8",
    ), level, fmt)

    if historical_debugs > 0 and not any(h.get_name() == f"{name}:historical_debug" for h in logger.handlers):
        debug_dir = log_dir / "debug"
        debug_dir.mkdir(parents=True,exist_ok=True)
        run_path = debug_dir / f"{name}_{datetime.now():%Y-%m-%d_%H-%M-%S}.log"
        _attach(logger, f"{name}:historical_debug",
                lambda: logging.FileHandler(filename=run_path, encoding="utf-8"), logging.DEBUG, fmt)
        _prune_runs(debug_dir, name, historical_debugs)

    if console:
        _attach(logger, f"{name}:console", logging.StreamHandler, level, fmt)

    return logger


# Sends uvicorn's server and access logs through the handlers of `target`, so a proxy run leaves one log trail.
def adopt_uvicorn_logs(target: logging.Logger):
    for uvicorn_name in UVICORN_LOGGERS:
        uvicorn_logger = logging.getLogger(uvicorn_name)
        uvicorn_logger.handlers = list(target.handlers)
        uvicorn_logger.propagate = False
        uvicorn_logger.setLevel(target.level)


log = get_logger(level=logging.DEBUG,console=False,historical_debugs=10)
log.info("=== INITIALIZED NEW SESSION ===")
