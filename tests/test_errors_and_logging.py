"""
Error taxonomy and logging tests.
"""

import json
import logging

import pytest
from fastapi.testclient import TestClient

from microtask.core.error_codes import (
    ErrorCategory,
    ErrorCode,
    StorageUnavailableError,
    TaskNotFoundError,
    TaskValidationError,
    TransactionFailedError,
    categorize_error,
)
from microtask.server import crud
from microtask.server.main import create_app
from microtask.server.server_logger import (
    TASK_LOGGER,
    get_crash_log_directory,
    get_log_directory,
    initialize_logging,
    log_crash,
)
from tests.fixtures import SampleDataGenerator


@pytest.mark.parametrize(
    "error, status, category",
    [
        (TaskValidationError("Title is required"), 400, ErrorCategory.VALIDATION),
        (TaskNotFoundError(3), 404, ErrorCategory.NOT_FOUND),
        (StorageUnavailableError("Database is unavailable"), 503, ErrorCategory.INFRASTRUCTURE),
        (TransactionFailedError("Failed to create task"), 500, ErrorCategory.SYSTEM),
    ],
)
def test_error_classes_map_to_status(error, status, category):
    assert error.http_status == status
    assert categorize_error(error) is category


def test_error_body():
    body = TaskValidationError("Title is required", code=ErrorCode.VALIDATION_TITLE_REQUIRED).to_dict()
    assert body == {"error": "Title is required", "code": 2001, "category": "validation"}
    assert TaskNotFoundError(8).to_dict()["task_id"] == 8


def test_untyped_errors_are_system():
    assert categorize_error(ValueError("x")) is ErrorCategory.SYSTEM


def test_log_files_land_in_configured_directory(isolated_config):
    initialize_logging()
    logging.getLogger("microtask.server").error("disk on fire")
    for handler in logging.getLogger("microtask.server").handlers:
        handler.flush()

    log_dir = get_log_directory()
    assert log_dir.parent == isolated_config.logging.resolve_directory()
    assert "disk on fire" in (log_dir / "server.log").read_text()
    assert "disk on fire" in (log_dir / "error.log").read_text()


def test_initialize_logging_does_not_duplicate_handlers():
    initialize_logging()
    first = len(logging.getLogger("microtask.server").handlers)
    initialize_logging()
    assert len(logging.getLogger("microtask.server").handlers) == first


def test_crash_report(isolated_config):
    try:
        raise RuntimeError("startup exploded")
    except RuntimeError as e:
        crash_id = log_crash(e, {"phase": "startup"})

    report = json.loads((get_crash_log_directory() / f"crash_{crash_id}.json").read_text())
    assert report["error_type"] == "RuntimeError"
    assert report["context"] == {"phase": "startup"}
    assert "startup exploded" in report["stack_trace"]


def test_task_events_are_logged(test_session, caplog):
    with caplog.at_level(logging.INFO, logger=TASK_LOGGER):
        task = crud.create_task(test_session, SampleDataGenerator.create_task(steps=["a", "b"]))
        crud.delete_task(test_session, task.id)

    messages = [record.getMessage() for record in caplog.records if record.name == TASK_LOGGER]
    assert any("task_created" in m and '"steps": 2' in m for m in messages)
    assert any("task_deleted" in m for m in messages)


def test_unhandled_request_error_writes_categorized_crash_report(test_engine):
    app = create_app(engine=test_engine)

    @app.get("/explode")
    def explode():
        raise RuntimeError("handler exploded")

    with TestClient(app, raise_server_exceptions=False) as client:
        assert client.get("/explode").status_code == 500

    reports = [json.loads(path.read_text()) for path in get_crash_log_directory().glob("crash_*.json")]
    request_reports = [r for r in reports if r["context"].get("path") == "/explode"]
    assert len(request_reports) == 1
    assert request_reports[0]["error_type"] == "RuntimeError"
    assert request_reports[0]["context"]["category"] == ErrorCategory.SYSTEM.value
