"""
SOLE RESPONSIBILITY: Contains all task Create, Read, Update, Delete (CRUD) logic.
Functions in this module are stateless and accept a database session and data models as arguments.
Every composite write (task row + step rows) runs inside one atomic transaction.
"""

import logging
from typing import Optional, List, Sequence

from sqlalchemy import delete, not_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from microtask.core.error_codes import ErrorCode, TaskNotFoundError, TaskValidationError
from . import models
from .assembler import assemble_task
from .database import atomic, read_scope, storage_errors
from .query import TaskQuery, build_task_list_statement
from .server_logger import log_task_event

logger = logging.getLogger(__name__)


def _task_fields(task_in: models.TaskCreate) -> dict:
    """
    Scalar columns for the tasks row.
    Re-checks what the API layer already validated: a payload built without
    validation must fail here rather than be coerced into the table.
    """
    if not task_in.title or not task_in.title.strip():
        raise TaskValidationError("Title is required", code=ErrorCode.VALIDATION_TITLE_REQUIRED)
    if not task_in.due_date or not task_in.due_date.strip():
        raise TaskValidationError("Due date is required", code=ErrorCode.VALIDATION_DUE_DATE_REQUIRED)

    priority = getattr(task_in.priority, "value", task_in.priority)
    if priority not in models.PRIORITY_VALUES:
        raise TaskValidationError(
            f"Priority must be one of: {', '.join(models.PRIORITY_VALUES)}",
            code=ErrorCode.VALIDATION_PRIORITY_INVALID,
        )

    for step in task_in.steps or []:
        if not step.title or not step.title.strip():
            raise TaskValidationError("Step title is required", code=ErrorCode.VALIDATION_STEP_TITLE_REQUIRED)

    return {
        "title": task_in.title,
        "description": task_in.description or "",
        "due_date": task_in.due_date,
        "priority": priority,
        "completed": bool(task_in.completed),
    }


def _insert_steps(session: Session, task_id: int, steps: Sequence[models.TaskStepCreate]) -> int:
    """Insert steps with order = 1-based position in the submitted list. Any client-sent order is ignored."""
    for position, step in enumerate(steps or [], start=1):
        session.add(
            models.TaskStepDB(
                task_id=task_id,
                title=step.title,
                step_order=position,
                completed=bool(step.completed),
            )
        )
    session.flush()
    return len(steps or [])


def create_task(session: Session, task_in: models.TaskCreate) -> models.TaskRead:
    """
    Task creation: inserts the task row and all of its steps in one transaction.
    The generated id is captured by flushing the task row before the steps go in.
    Returns the aggregate as re-read from storage.
    """
    fields = _task_fields(task_in)

    with atomic(session, "create task"):
        db_task = models.TaskDB(**fields)
        session.add(db_task)
        session.flush()
        task_id = db_task.id
        step_count = _insert_steps(session, task_id, task_in.steps)

    log_task_event(task_id, "task_created", {"priority": fields["priority"], "steps": step_count})
    return get_task(session, task_id)


def get_task(session: Session, task_id: int) -> models.TaskRead:
    """Primary key lookup returning the task with its ordered steps."""
    if not models.is_storable_id(task_id):
        raise TaskNotFoundError(task_id)
    with read_scope(session, "fetch task", task_id):
        statement = select(models.TaskDB).where(models.TaskDB.id == task_id)
        task = session.exec(statement).first()
        if task is None:
            raise TaskNotFoundError(task_id)
        return assemble_task(session, task)


def get_all_tasks(session: Session, query: Optional[TaskQuery] = None) -> List[models.TaskRead]:
    """
    Filtered, sorted listing of task aggregates.
    Always returns a list; an empty table gives an empty list.
    """
    with read_scope(session, "list tasks"):
        tasks = session.exec(build_task_list_statement(query)).all()
        return [assemble_task(session, task) for task in tasks]


def update_task(session: Session, task_id: int, task_in: models.TaskUpdate) -> models.TaskRead:
    """
    Full replace: every scalar field is overwritten and the stored steps are
    discarded and replaced by the payload's steps, all in one transaction.
    A missing id raises TaskNotFoundError and writes nothing.
    """
    fields = _task_fields(task_in)
    if not models.is_storable_id(task_id):
        raise TaskNotFoundError(task_id)

    with atomic(session, "update task", task_id):
        result = session.exec(update(models.TaskDB).where(models.TaskDB.id == task_id).values(**fields))
        if result.rowcount == 0:
            raise TaskNotFoundError(task_id)

        session.exec(delete(models.TaskStepDB).where(models.TaskStepDB.task_id == task_id))
        step_count = _insert_steps(session, task_id, task_in.steps)

    log_task_event(task_id, "task_updated", {"steps": step_count})
    return get_task(session, task_id)


def toggle_task_completion(session: Session, task_id: int) -> bool:
    """
    Flip the task's completed flag with a single statement. Steps are untouched.
    Returns False when no row matched; a missing id is not an error here.
    """
    if not models.is_storable_id(task_id):
        logger.debug(f"Toggle on task {task_id} skipped: id outside the INTEGER range")
        return False

    statement = (
        update(models.TaskDB)
        .where(models.TaskDB.id == task_id)
        .values(completed=not_(models.TaskDB.completed))
        .execution_options(synchronize_session=False)
    )
    with storage_errors("toggle task completion", task_id):
        try:
            result = session.exec(statement)
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise

    toggled = result.rowcount > 0
    if toggled:
        log_task_event(task_id, "completion_toggled")
    else:
        logger.debug(f"Toggle on task {task_id} matched no rows")
    return toggled


def delete_task(session: Session, task_id: int) -> None:
    """
    Delete a task and all of its steps in one transaction.
    Steps go first so no orphan can survive even without foreign key enforcement.
    Zero affected task rows raises TaskNotFoundError and the step delete is rolled back.
    """
    if not models.is_storable_id(task_id):
        raise TaskNotFoundError(task_id)

    with atomic(session, "delete task", task_id):
        steps_result = session.exec(delete(models.TaskStepDB).where(models.TaskStepDB.task_id == task_id))
        task_result = session.exec(delete(models.TaskDB).where(models.TaskDB.id == task_id))
        if task_result.rowcount == 0:
            raise TaskNotFoundError(task_id)

    log_task_event(task_id, "task_deleted", {"steps_removed": steps_result.rowcount})
