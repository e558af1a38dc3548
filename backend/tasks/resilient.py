"""
Resilient periodic task execution.

Every background job (pass planning, dynamic DNS, ...) is wrapped in a
ResilientTask before it is handed to the scheduler. The wrapper owns the
fatal latch and the retry-after backoff, persists both through a state
store, and contains every exception raised by the work so that one broken
job can never starve the others.

The work itself is a plain callable:

    def work(state: TaskState, now: datetime) -> TaskState:
        ...
        return state                              # success, nothing changed
        return state.latch_fatal()                # permanent failure
        return state.backoff(now, RETRY_TIMEOUT)  # transient server failure
"""

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from common.configuration import Configuration

logger = logging.getLogger("resilient-task")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TaskState:
    """Cross-invocation state of a resilient task."""

    fatal: bool = False
    retry_after: Optional[datetime] = None

    def latch_fatal(self) -> "TaskState":
        return replace(self, fatal=True)

    def backoff(self, now: datetime, cooldown: timedelta) -> "TaskState":
        return replace(self, retry_after=now + cooldown)

    def clear_backoff(self) -> "TaskState":
        return replace(self, retry_after=None)


class ConfigTaskStateStore:
    """
    Persists a TaskState as plain configuration keys.

    ``<prefix>.retry.after.millis`` holds the backoff deadline in epoch
    milliseconds and ``<prefix>.fatal`` the latch. Removing the fatal key is
    the operator's way of re-enabling a latched task.
    """

    def __init__(self, config: Configuration, prefix: str):
        self.config = config
        self.retry_key = f"{prefix}.retry.after.millis"
        self.fatal_key = f"{prefix}.fatal"

    def load(self) -> TaskState:
        millis = self.config.get_int(self.retry_key)
        retry_after = None
        if millis is not None:
            retry_after = datetime.fromtimestamp(millis / 1000.0, tz=timezone.utc)
        return TaskState(fatal=self.config.get_bool(self.fatal_key), retry_after=retry_after)

    def save(self, state: TaskState):
        if state.retry_after is None:
            self.config.remove(self.retry_key)
        else:
            self.config.set_property(self.retry_key, int(state.retry_after.timestamp() * 1000))

        if state.fatal:
            self.config.set_property(self.fatal_key, True)
        else:
            self.config.remove(self.fatal_key)

        self.config.update()


class InMemoryTaskStateStore:
    """State store for tasks whose state does not need to survive a restart."""

    def __init__(self, state: Optional[TaskState] = None):
        self.state = state or TaskState()

    def load(self) -> TaskState:
        return self.state

    def save(self, state: TaskState):
        self.state = state


class ResilientTask:
    """
    Wraps a unit of work invoked on a fixed schedule.

    Invocations are serialized; an invocation that arrives while the previous
    one is still running is skipped.
    """

    def __init__(
        self,
        name: str,
        work: Callable[[TaskState, datetime], TaskState],
        store=None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.name = name
        self.work = work
        self.store = store or InMemoryTaskStateStore()
        self.clock = clock
        self.state = self.store.load()
        self._lock = threading.Lock()

    def __call__(self):
        self.run()

    def run(self) -> TaskState:
        if not self._lock.acquire(blocking=False):
            logger.debug(f"Task '{self.name}' is still running, skipping this invocation")
            return self.state

        try:
            self._run_locked()
        finally:
            self._lock.release()

        return self.state

    def _run_locked(self):
        if self.state.fatal:
            return

        now = self.clock()
        if self.state.retry_after is not None:
            if self.state.retry_after > now:
                return
            logger.info(f"Retry deadline for task '{self.name}' has passed, resuming")
            if not self._persist(self.state.clear_backoff()):
                return

        try:
            new_state = self.work(self.state, now)
        except Exception as e:
            logger.error(f"Error while running task '{self.name}': {e}")
            logger.exception(e)
            return

        if new_state is None or new_state == self.state:
            return

        if new_state.fatal and not self.state.fatal:
            logger.error(f"Task '{self.name}' is disabled until the operator intervenes")
        elif new_state.retry_after is not None:
            logger.warning(
                f"Task '{self.name}' backing off until {new_state.retry_after.isoformat()}"
            )

        self._persist(new_state)

    def _persist(self, state: TaskState) -> bool:
        # in-memory state follows the decision even when the write fails
        self.state = state
        try:
            self.store.save(state)
            return True
        except Exception as e:
            logger.error(f"Unable to persist state of task '{self.name}': {e}")
            logger.exception(e)
            return False
