"""
Sample data generators for testing.
"""

from typing import Dict, List, Any, Optional

from microtask.server.models import Priority, TaskCreate, TaskUpdate


class SampleDataGenerator:
    """Generates task payloads for testing various scenarios."""

    @staticmethod
    def create_task_data(
        title: str = "Write report",
        due_date: str = "2024-03-15",
        priority: Priority = Priority.MEDIUM,
        description: str = "",
        completed: bool = False,
        steps: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """Create a JSON-ready task payload."""
        return {
            "title": title,
            "description": description,
            "due_date": due_date,
            "priority": priority.value if isinstance(priority, Priority) else priority,
            "completed": completed,
            "steps": [{"title": step} for step in steps or []],
        }

    @classmethod
    def create_task(cls, **kwargs) -> TaskCreate:
        return TaskCreate(**cls.create_task_data(**kwargs))

    @classmethod
    def update_task(cls, **kwargs) -> TaskUpdate:
        return TaskUpdate(**cls.create_task_data(**kwargs))

    @classmethod
    def cook_dinner(cls, steps: Optional[List[str]] = None) -> Dict[str, Any]:
        """The reference scenario: a high-priority task with two steps."""
        return cls.create_task_data(
            title="Cook dinner",
            due_date="2024-01-01",
            priority=Priority.HIGH,
            steps=["Chop", "Cook"] if steps is None else steps,
        )

    @classmethod
    def mixed_backlog(cls) -> List[Dict[str, Any]]:
        """Tasks spread across priorities, due dates and completion states, in insertion order."""
        return [
            cls.create_task_data(title="Pay rent", due_date="2024-02-01", priority=Priority.HIGH, completed=True),
            cls.create_task_data(title="Water plants", due_date="2024-01-10", priority=Priority.LOW),
            cls.create_task_data(title="Book dentist", due_date="2024-03-05", priority=Priority.MEDIUM, completed=True),
            cls.create_task_data(title="Fix bike", due_date="2024-01-20", priority=Priority.HIGH, steps=["Buy tube", "Patch"]),
            cls.create_task_data(title="Sort photos", due_date="2024-02-15", priority=Priority.LOW, completed=True),
        ]
