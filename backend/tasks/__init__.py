"""
Background task management system.

This module provides the resilient wrapper shared by every periodic job and the
registry of jobs the station can run.
"""

from tasks.resilient import ResilientTask, TaskState

__all__ = ["ResilientTask", "TaskState"]
