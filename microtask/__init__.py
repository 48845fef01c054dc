"""MicroTask - a task tracker with ordered sub-steps over SQLite.

Tasks and their steps are written and read as one consistency unit.
"""

# Package metadata for distribution
__version__ = "0.3.0"
__author__ = "Batuhan Ali"
