"""
Task Registry - Registry of available background tasks.

This module maintains a registry of factories for the periodic background tasks.
A task is only scheduled when the configuration enables it and its factory
accepts the configuration.
"""

import logging
from typing import Callable, Dict, List

from common.configuration import Configuration
from common.exceptions import ConfigurationError
from tasks.ddns import NoIPUpdater
from tasks.resilient import ConfigTaskStateStore, ResilientTask

logger = logging.getLogger("task-registry")


def create_noip_task(config: Configuration) -> ResilientTask:
    updater = NoIPUpdater(config)
    return ResilientTask("ddns-noip", updater, ConfigTaskStateStore(config, "ddns"))


# Registry of available background tasks
# Format: {"task_name": factory(config) -> ResilientTask}
TASK_REGISTRY: Dict[str, Callable[[Configuration], ResilientTask]] = {
    "ddns-noip": create_noip_task,
}


def get_task(task_name: str) -> Callable[[Configuration], ResilientTask]:
    """
    Get a task factory by name.

    Raises:
        KeyError: If task not found in registry
    """
    if task_name not in TASK_REGISTRY:
        raise KeyError(f"Task '{task_name}' not found in registry")

    return TASK_REGISTRY[task_name]


def list_tasks() -> List[str]:
    return list(TASK_REGISTRY.keys())


def register_task(name: str, factory: Callable[[Configuration], ResilientTask]):
    """
    Register a new task factory.

    Raises:
        ValueError: If task name already registered
    """
    if name in TASK_REGISTRY:
        raise ValueError(f"Task '{name}' is already registered")

    TASK_REGISTRY[name] = factory


def enabled_task_names(config: Configuration) -> List[str]:
    names = []
    if config.get_property("ddns.type") == "noip":
        names.append("ddns-noip")
    return names


def build_background_tasks(config: Configuration) -> List[ResilientTask]:
    """Instantiate every enabled task, skipping the ones with invalid configuration."""
    tasks = []
    for name in enabled_task_names(config):
        try:
            tasks.append(get_task(name)(config))
        except ConfigurationError as e:
            logger.error(f"Task '{name}' is not scheduled: {e.message}")
    return tasks
