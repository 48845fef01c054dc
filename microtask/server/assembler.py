"""
SOLE RESPONSIBILITY: Reconstructs task aggregates from the tasks and task_steps tables.
"""

from typing import List

from sqlmodel import Session, select

from . import models


def get_task_steps(session: Session, task_id: int) -> List[models.TaskStepDB]:
    """Steps of one task, ordered by their stored position."""
    statement = (
        select(models.TaskStepDB)
        .where(models.TaskStepDB.task_id == task_id)
        .order_by(models.TaskStepDB.step_order.asc())
    )
    return list(session.exec(statement))


def to_step_read(step: models.TaskStepDB) -> models.TaskStepRead:
    return models.TaskStepRead(
        id=step.id,
        task_id=step.task_id,
        title=step.title,
        order=step.step_order,
        completed=step.completed,
    )


def assemble_task(session: Session, task: models.TaskDB) -> models.TaskRead:
    """Attach the ordered steps to a task row. A task without steps gets an empty list."""
    steps = get_task_steps(session, task.id)
    return models.TaskRead(
        id=task.id,
        title=task.title,
        description=task.description or "",
        due_date=task.due_date,
        priority=task.priority,
        completed=bool(task.completed),
        steps=[to_step_read(step) for step in steps],
    )
