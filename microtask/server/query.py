"""
SOLE RESPONSIBILITY: Builds the task list statement from a closed set of filter and sort options.
Caller strings are only ever compared against the enumerations below; they never reach SQL text.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy import bindparam, case
from sqlmodel import select

from .models import TaskDB


class SortKey(str, Enum):
    DUE_DATE = "due_date"
    PRIORITY = "priority"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


# high=1, medium=2, low=3, anything else=4
PRIORITY_RANK = case(
    {"high": 1, "medium": 2, "low": 3},
    value=TaskDB.priority,
    else_=4,
)

_COMPLETED_VALUES = {"true": True, "false": False}


@dataclass(frozen=True)
class TaskQuery:
    """Filter and sort options for listing tasks."""

    completed: Optional[bool] = None
    sort: Optional[SortKey] = None
    order: SortOrder = SortOrder.DESC

    @classmethod
    def from_params(
        cls,
        completed: Optional[str] = None,
        sort: Optional[str] = None,
        order: Optional[str] = None,
    ) -> "TaskQuery":
        """Parse raw query-string values. Anything outside the enumerations is ignored, not rejected."""
        completed_filter = _COMPLETED_VALUES.get((completed or "").strip().lower())

        try:
            sort_key = SortKey((sort or "").strip().lower())
        except ValueError:
            sort_key = None

        try:
            sort_order = SortOrder((order or "").strip().lower())
        except ValueError:
            sort_order = SortOrder.DESC

        return cls(completed=completed_filter, sort=sort_key, order=sort_order)


def build_task_list_statement(query: Optional[TaskQuery] = None):
    """
    Pure function: TaskQuery -> SELECT over tasks with a bound-parameter filter and a whitelisted ORDER BY.

    Priority direction is inverted relative to due_date: "asc" orders by rank
    DESC (low first) and "desc" by rank ASC (high first). Existing clients rely
    on this, so it is kept as-is.
    """
    query = query or TaskQuery()
    statement = select(TaskDB)

    if query.completed is not None:
        statement = statement.where(TaskDB.completed == bindparam("completed", query.completed))

    if query.sort is SortKey.DUE_DATE:
        due_date = TaskDB.due_date.asc() if query.order is SortOrder.ASC else TaskDB.due_date.desc()
        statement = statement.order_by(due_date)
    elif query.sort is SortKey.PRIORITY:
        rank = PRIORITY_RANK.desc() if query.order is SortOrder.ASC else PRIORITY_RANK.asc()
        statement = statement.order_by(rank)

    # Insertion order when unsorted, and the tie-break for equal sort keys
    return statement.order_by(TaskDB.id.asc())
