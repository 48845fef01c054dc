"""
Custom assertions for testing.
"""

from typing import List

from microtask.server.models import TaskRead


def assert_step_orders(task: TaskRead, titles: List[str]):
    """Assert steps carry exactly `titles` in order with contiguous 1..N orders."""
    assert [step.title for step in task.steps] == titles
    assert [step.order for step in task.steps] == list(range(1, len(titles) + 1))
    assert all(step.task_id == task.id for step in task.steps)
