"""
Test fixtures and utilities for microtask testing.
"""

from .assertions import *
from .database import *
from .sample_data import *

__all__ = [
    "MockDatabase",
    "count_tasks",
    "count_steps",
    "fail_on_statement",
    "assert_step_orders",
    "SampleDataGenerator",
]
