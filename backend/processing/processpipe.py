# Copyright (c) 2025 Efstratios Goudelis
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""
Process pipe manager.

Spawns a chain of external programs (tuner -> converter -> ...) and supervises
them for the lifetime of one capture. The first two stages are joined by a
copy loop running in the calling thread so cancellation can be observed
between reads; any further stages are chained with OS pipes. Every exit path
of ``run()`` ends in ``shutdown()``, which stops each process within a fixed
timeout and force-kills stragglers.
"""

import logging
import subprocess
import threading
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from common.exceptions import ProcessSpawnError

logger = logging.getLogger("process-pipe")

BUFFER_SIZE = 0x1000  # 4K
SHUTDOWN_TIMEOUT = 10.0


@dataclass(frozen=True)
class CommandSpec:
    """One stage of a pipe."""

    name: str
    args: List[str] = field(default_factory=list)
    inherit_output: bool = True  # final stage stdout/stderr go to our own streams
    merge_stderr: bool = False

    def command_line(self) -> str:
        return " ".join(self.args)


def spawn_process(spec: CommandSpec, stdin=None, stdout=None) -> subprocess.Popen:
    """
    Start one stage.

    Raises:
        ProcessSpawnError: If the executable cannot be started
    """
    if spec.merge_stderr:
        stderr = subprocess.STDOUT
    elif spec.inherit_output:
        stderr = None
    else:
        stderr = subprocess.DEVNULL

    try:
        return subprocess.Popen(spec.args, stdin=stdin, stdout=stdout, stderr=stderr)
    except (OSError, ValueError) as e:
        raise ProcessSpawnError(f"unable to start {spec.name}: {e}", command=spec.args) from e


def _close_quietly(stream):
    if stream is None:
        return
    try:
        stream.close()
    except (OSError, ValueError) as e:
        logger.debug(f"Error closing stream: {e}")


def shutdown_process(
    name: str,
    process: Optional[subprocess.Popen],
    timeout: float = SHUTDOWN_TIMEOUT,
    close_input: bool = False,
):
    """
    Stop a child process, waiting up to ``timeout`` seconds before killing it.

    With ``close_input`` the graceful request is end-of-stream on stdin instead
    of SIGTERM, so filters can flush their output. Safe to call repeatedly and
    with ``None``.
    """
    if process is None:
        return

    try:
        if process.poll() is None:
            if close_input:
                # stages fed by another process see end-of-stream when it exits
                _close_quietly(process.stdin)
            else:
                process.terminate()

            try:
                process.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                logger.warning(f"{name} did not stop within {timeout}s, killing it")
                process.kill()
                process.wait()
    except OSError as e:
        logger.debug(f"Unable to stop {name}: {e}")
    finally:
        for stream in (process.stdin, process.stdout, process.stderr):
            _close_quietly(stream)


class ProcessPipe:
    """
    Supervises a chain of at least two external processes.

    Usage:
        with ProcessPipe([rtl_sdr_spec, sox_spec]) as pipe:
            pipe.run(cancel_event)
    """

    def __init__(
        self,
        stages: Sequence[CommandSpec],
        spawn=spawn_process,
        buffer_size: int = BUFFER_SIZE,
        shutdown_timeout: float = SHUTDOWN_TIMEOUT,
    ):
        if len(stages) < 2:
            raise ValueError("a process pipe needs at least two stages")

        self.stages = list(stages)
        self.spawn = spawn
        self.buffer_size = buffer_size
        self.shutdown_timeout = shutdown_timeout
        self.processes: List[subprocess.Popen] = []
        self._cancel = threading.Event()
        self._lock = threading.RLock()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
        return False

    def describe(self) -> str:
        return " | ".join(spec.command_line() for spec in self.stages)

    def start(self):
        """
        Spawn every stage.

        Raises:
            ProcessSpawnError: If a stage cannot be started. Stages that were
                already running are shut down first.
        """
        with self._lock:
            try:
                self._spawn_all()
            except ProcessSpawnError:
                self.shutdown()
                raise

    def _spawn_all(self):
        last_index = len(self.stages) - 1
        for index, spec in enumerate(self.stages):
            if index == 0:
                stdin = subprocess.DEVNULL
            elif index == 1:
                stdin = subprocess.PIPE
            else:
                stdin = self.processes[index - 1].stdout

            if index < last_index:
                stdout = subprocess.PIPE
            elif spec.inherit_output:
                stdout = None
            else:
                stdout = subprocess.DEVNULL

            logger.info(f"Starting {spec.name}: {spec.command_line()}")
            process = self.spawn(spec, stdin=stdin, stdout=stdout)

            if index > 1:
                # the child now owns the read end
                _close_quietly(self.processes[index - 1].stdout)

            self.processes.append(process)

    def cancel(self):
        self._cancel.set()

    def run(self, cancel_event: Optional[threading.Event] = None) -> int:
        """
        Copy bytes from the first stage into the second until end-of-stream or
        cancellation, then tear the pipe down.

        I/O faults are logged, never raised. Returns the number of bytes copied.
        """
        with self._lock:
            processes = list(self.processes)

        total = 0
        if len(processes) < 2:
            logger.warning(f"Pipe {self.describe()} is not running")
            return total

        source = processes[0].stdout
        sink = processes[1].stdin

        def cancelled():
            return self._cancel.is_set() or (cancel_event is not None and cancel_event.is_set())

        try:
            while not cancelled():
                chunk = source.read1(self.buffer_size)
                if not chunk:
                    break
                sink.write(chunk)
                total += len(chunk)
            sink.flush()
        except (OSError, ValueError) as e:
            logger.error(f"Unable to run {self.describe()}: {e}")
        finally:
            logger.info(f"Stopping pipe thread after {total} bytes")
            self.shutdown()

        return total

    def shutdown(self):
        """Stop every spawned process. Idempotent."""
        self._cancel.set()
        with self._lock:
            processes, self.processes = self.processes, []
            for index, process in enumerate(processes):
                shutdown_process(
                    self.stages[index].name,
                    process,
                    timeout=self.shutdown_timeout,
                    close_input=index > 0,
                )
