"""
Single-slot background task runner.

The interactive thread calls start(), cancel() and poll(). Work happens on
one worker thread per task; the worker never touches shared state, it only
puts TaskProgress and TaskFinished events on a queue. poll() drains that
queue in order and, when it meets a TaskFinished for a completed task,
publishes the result to SharedState in one assignment.
"""
import queue
import threading
from dataclasses import dataclass
from typing import Any, Optional

from appsweep.errors import AlreadyRunning, AppSweepError, SelectionLocked, TaskCancelled
from appsweep.logger import SweepLogger, warn
from appsweep.macos import has_full_disk_access
from appsweep.models import TaskProgress, TaskState, plan_removal


@dataclass(frozen=True)
class TaskFinished:
    task_id: int
    phase: str
    state: TaskState
    result: Any = None
    error: Optional[BaseException] = None


class SharedState:
    """
    Current AppRecord list and the outcomes of the last removal.

    Both are replaced wholesale by the scheduler. Outside of that only
    FileEntry.selected may change, and only while read_only is False.
    """

    def __init__(self):
        self._records = ()
        self._outcomes = ()
        self.read_only = False
        # None until a scan has checked
        self.full_disk_access = None

    @property
    def records(self):
        return self._records

    @property
    def outcomes(self):
        return self._outcomes

    def record_for(self, bundle_path):
        for record in self._records:
            if record.bundle_path == bundle_path:
                return record
        return None

    def set_selected(self, entry, selected):
        if self.read_only:
            raise SelectionLocked("Selection cannot change while a task is running.")
        entry.selected = bool(selected)

    def select_all(self, record, selected=True):
        for entry in record.related_files:
            self.set_selected(entry, selected)

    def replace_records(self, records):
        self._records = tuple(records)

    def replace_outcomes(self, outcomes):
        self._outcomes = tuple(outcomes)


class Task:
    phase = "task"

    def run(self, report, checkpoint):
        raise NotImplementedError

    def publish(self, state, result):
        pass


class ScanTask(Task):
    phase = "scan"

    def __init__(self, engine, folders=None, access_check=has_full_disk_access):
        self.engine = engine
        self.folders = folders
        self.access_check = access_check
        self.full_disk_access = None

    def run(self, report, checkpoint):
        records = self.engine.scan(self.folders, report, checkpoint)
        if self.access_check is not None:
            self.full_disk_access = self.access_check()
            if not self.full_disk_access:
                warn(self.engine.logger, "Full Disk Access is missing; some leftovers might be missed.")
        return records

    def publish(self, state, result):
        state.replace_records(result)
        state.full_disk_access = self.full_disk_access


class RemovalTask(Task):
    phase = "remove"

    def __init__(self, executor, requests):
        self.executor = executor
        self.requests = list(requests)

    @classmethod
    def for_record(cls, executor, record, include_bundle=True):
        return cls(executor, plan_removal(record, include_bundle))

    def run(self, report, checkpoint):
        return self.executor.remove(self.requests, report, checkpoint)

    def publish(self, state, result):
        state.replace_outcomes(result)


class TaskScheduler:
    def __init__(self, shared_state=None, logger=None):
        self.shared_state = shared_state or SharedState()
        self.logger = logger or SweepLogger()
        self.last_finished = None
        self._events = queue.Queue()
        self._lock = threading.Lock()
        self._state = TaskState.IDLE
        self._task = None
        self._task_id = 0
        self._worker = None
        self._cancel = threading.Event()

    @property
    def state(self):
        return self._state

    @property
    def is_running(self):
        return self._state is TaskState.RUNNING

    @property
    def current_task_id(self):
        return self._task_id

    def start(self, task):
        """Starts task on a worker thread and returns its id."""
        with self._lock:
            if self._state is TaskState.RUNNING:
                raise AlreadyRunning(f"A {self._task.phase} task is already running.")
            self._task_id += 1
            task_id = self._task_id
            self._task = task
            self._cancel = threading.Event()
            self._state = TaskState.RUNNING
            self.shared_state.read_only = True

        self._worker = threading.Thread(
            target=self._run,
            args=(task, task_id, self._cancel),
            name=f"appsweep-{task.phase}-{task_id}",
            daemon=True,
        )
        self._worker.start()
        return task_id

    def cancel(self):
        """Requests cancellation; honoured at the next checkpoint."""
        if self._state is not TaskState.RUNNING:
            return False
        self._cancel.set()
        return True

    def _run(self, task, task_id, cancel):
        progress = {"index": 0, "total": 0, "sent": False}

        def report(current, total, message=""):
            if progress["sent"] and current <= progress["index"]:
                return
            progress.update(index=current, total=total, sent=True)
            self._events.put(TaskProgress(task.phase, current, total, message, task_id))

        def close(message):
            # the last event a task emits always has current_index == total
            if not progress["sent"] or progress["index"] != progress["total"]:
                total = progress["total"]
                self._events.put(TaskProgress(task.phase, total, total, message, task_id))

        def checkpoint():
            if cancel.is_set():
                raise TaskCancelled(f"{task.phase} cancelled")

        try:
            result = task.run(report, checkpoint)
        except TaskCancelled:
            close("Cancelled")
            self._events.put(TaskFinished(task_id, task.phase, TaskState.CANCELLED))
            return
        except AppSweepError as e:
            warn(self.logger, f"{task.phase} failed: {e}")
            close("Failed")
            self._events.put(TaskFinished(task_id, task.phase, TaskState.FAILED, error=e))
            return
        except Exception as e:
            warn(self.logger, f"{task.phase} thread error: {e!r}")
            close("Failed")
            self._events.put(TaskFinished(task_id, task.phase, TaskState.FAILED, error=e))
            return

        close("Done")
        self._events.put(TaskFinished(task_id, task.phase, TaskState.COMPLETED, result=result))

    def _finish(self, event):
        if event.state is TaskState.COMPLETED:
            self._task.publish(self.shared_state, event.result)
        with self._lock:
            self._state = event.state
            self.shared_state.read_only = False
            self.last_finished = event
            self._worker = None

    def poll(self):
        """Drains queued events in production order. Call from the interactive thread."""
        events = []
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                break
            if isinstance(event, TaskFinished):
                self._finish(event)
            events.append(event)
        return events

    def wait(self, timeout=None):
        """Blocks until the worker exits, then polls. For headless callers and tests."""
        worker = self._worker
        if worker is not None:
            worker.join(timeout)
        return self.poll()
