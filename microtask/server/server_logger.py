"""
Server logging for microtask.
File handlers for the server, errors and HTTP access, crash reports for
unexpected failures, and small helpers the repository uses to record
task events and storage failures.
"""

import os
import sys
import json
import time
import logging
import itertools
import traceback
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from logging.handlers import RotatingFileHandler
from contextlib import asynccontextmanager

from microtask.core.error_codes import categorize_error
from .config import get_config


SERVER_LOGGER = "microtask.server"
ACCESS_LOGGER = "microtask.access"
TASK_LOGGER = "microtask.server.tasks"
DB_LOGGER = "microtask.server.db"

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
SERVER_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
ERROR_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
ACCESS_FORMAT = "%(asctime)s - %(message)s"

_request_counter = itertools.count(1)


def _logs_subdir(name: str) -> Path:
    path = get_config().logging.resolve_directory() / name
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_log_directory() -> Path:
    """Directory holding server.log, error.log and access.log."""
    return _logs_subdir("server")


def get_crash_log_directory() -> Path:
    return _logs_subdir("crashes")


def _rotating_handler(filename: str, fmt: str, level: int, size_factor: int = 1) -> RotatingFileHandler:
    settings = get_config().logging
    handler = RotatingFileHandler(
        get_log_directory() / filename,
        maxBytes=settings.max_log_file_size_mb * size_factor * 1024 * 1024,
        backupCount=settings.backup_count,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=DATE_FORMAT))
    return handler


def _replace_handlers(logger: logging.Logger, *handlers: logging.Handler):
    # Re-initialising (one app per test, reloads) must not stack handlers
    for old in logger.handlers[:]:
        old.close()
        logger.removeHandler(old)
    for handler in handlers:
        logger.addHandler(handler)


def initialize_logging(debug: bool = False) -> logging.Logger:
    """
    Configure the microtask loggers.

    - microtask.server: server.log (INFO+), error.log (ERROR+), console when debugging
    - microtask.access: access.log, one line per request and response
    - microtask.server.tasks / .db: propagate into the server logger
    """
    settings = get_config().logging
    debug = debug or settings.debug

    server_logger = logging.getLogger(SERVER_LOGGER)
    server_logger.setLevel(logging.DEBUG if debug else getattr(logging, settings.level, logging.INFO))
    handlers = [
        _rotating_handler("server.log", SERVER_FORMAT, logging.INFO),
        _rotating_handler("error.log", ERROR_FORMAT, logging.ERROR),
    ]
    if debug:
        console = logging.StreamHandler()
        console.setLevel(logging.DEBUG)
        console.setFormatter(logging.Formatter(SERVER_FORMAT, datefmt=DATE_FORMAT))
        handlers.append(console)
    _replace_handlers(server_logger, *handlers)

    access_logger = logging.getLogger(ACCESS_LOGGER)
    access_logger.setLevel(logging.INFO)
    _replace_handlers(access_logger, _rotating_handler("access.log", ACCESS_FORMAT, logging.INFO, size_factor=2))

    logging.getLogger(TASK_LOGGER).setLevel(logging.INFO)
    logging.getLogger(DB_LOGGER).setLevel(logging.DEBUG if debug else logging.INFO)

    server_logger.info(f"Logging initialized in {get_log_directory()} (debug={debug})")
    return server_logger


def log_crash(error: BaseException, context: Optional[Dict[str, Any]] = None) -> str:
    """Write a JSON crash report and a CRITICAL record; returns the crash id."""
    now = datetime.now(timezone.utc)
    crash_id = now.strftime("%Y%m%d_%H%M%S_%f")

    report = {
        "crash_id": crash_id,
        "timestamp": now.isoformat(),
        "error_type": type(error).__name__,
        "error_message": str(error),
        "cause": repr(error.__cause__) if error.__cause__ else None,
        "stack_trace": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
        "python_version": sys.version,
        "pid": os.getpid(),
        "context": context or {},
    }
    with open(get_crash_log_directory() / f"crash_{crash_id}.json", "w") as f:
        json.dump(report, f, indent=2, default=str)

    logging.getLogger(SERVER_LOGGER).critical(f"CRASH {crash_id}: {error}", exc_info=error)
    return crash_id


async def log_request_response(request, call_next):
    """HTTP middleware: access line per request/response, crash report for anything unhandled."""
    access_logger = logging.getLogger(ACCESS_LOGGER)
    request_id = f"req-{next(_request_counter):06d}"
    client = request.client.host if request.client else "unknown"
    started = time.perf_counter()

    access_logger.info(f"[{request_id}] {request.method} {request.url.path} from {client}")
    try:
        response = await call_next(request)
    except Exception as e:
        elapsed = time.perf_counter() - started
        crash_id = log_crash(
            e,
            {
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "category": categorize_error(e).value,
                "elapsed": elapsed,
            },
        )
        access_logger.error(f"[{request_id}] 500 after {elapsed:.3f}s (crash {crash_id})")
        raise

    elapsed = time.perf_counter() - started
    access_logger.info(f"[{request_id}] {response.status_code} in {elapsed:.3f}s")
    if response.status_code >= 500:
        logging.getLogger(SERVER_LOGGER).error(
            f"{request.method} {request.url.path} answered {response.status_code} [{request_id}]"
        )
    return response


@asynccontextmanager
async def log_lifecycle(app_name: str = "microtask"):
    """Startup and shutdown banners around the server's lifetime."""
    logger = logging.getLogger(SERVER_LOGGER)
    started = time.monotonic()
    logger.info(f"Starting {app_name} server (pid {os.getpid()}, Python {sys.version.split()[0]})")
    try:
        yield
    finally:
        logger.info(f"Stopped {app_name} server after {time.monotonic() - started:.1f}s")


def log_database_operation(operation: str, details: Dict[str, Any], error: Optional[BaseException] = None):
    """Record the outcome of a storage operation; failures at ERROR with the driver message."""
    logger = logging.getLogger(DB_LOGGER)
    context = ", ".join(f"{key}={value}" for key, value in details.items() if value is not None)
    suffix = f" ({context})" if context else ""
    if error is not None:
        logger.error(f"{operation} failed{suffix}: {error}")
    else:
        logger.debug(f"{operation} committed{suffix}")


def log_task_event(task_id: int, event: str, details: Optional[Dict[str, Any]] = None):
    """One INFO line per task lifecycle event, details as JSON."""
    message = f"Task {task_id}: {event}"
    if details:
        message += f" - {json.dumps(details, default=str)}"
    logging.getLogger(TASK_LOGGER).info(message)
