"""
Task scheduler for responsive image processing.

Queues work in FIFO order and runs it on a single background worker so
the event loop stays free. Exactly one task is in flight at a time;
completion is handled back on the event loop thread, which is the only
place task state, callbacks and the next dispatch happen.
"""

import asyncio
import logging
import time
import uuid
from collections import OrderedDict, deque
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Deque, Dict, Optional

from ..errors import UnknownOperation, WorkerFailure
from .models import ProcessingTask, TaskState

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Any]

MAX_COMPLETED_TASKS = 100


class TaskScheduler:
    """
    Strictly sequential FIFO scheduler over one worker thread.

    Handlers are registered per task kind and receive the task payload in
    the worker thread. They must not touch state owned by the event loop.
    """

    def __init__(self, thread_name_prefix: str = "PixelFruit-Worker"):
        self._handlers: Dict[str, Handler] = {}

        # Task management
        self._queue: Deque[ProcessingTask] = deque()
        self.active_tasks: Dict[str, ProcessingTask] = {}
        self.completed_tasks: "OrderedDict[str, ProcessingTask]" = OrderedDict()
        self._in_flight: Optional[ProcessingTask] = None

        # Single worker context
        self.executor = ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix=thread_name_prefix
        )
        self._shutdown = False

        # Statistics
        self.stats = {
            'tasks_submitted': 0,
            'tasks_completed': 0,
            'tasks_failed': 0,
            'tasks_cancelled': 0,
            'total_processing_time': 0.0
        }

        logger.info(f"TaskScheduler initialized ({thread_name_prefix})")

    def register(self, kind: str, handler: Handler):
        """Register the worker-side handler for a task kind."""
        self._handlers[kind] = handler

    def submit(self, kind: str, payload: Any,
               callback: Optional[Callable[[ProcessingTask], None]] = None) -> ProcessingTask:
        """
        Queue a task for background execution.

        Must be called from the event loop thread.

        Args:
            kind: Registered task kind
            payload: Handler input; the worker owns it from now on
            callback: Optional callable receiving the finished task

        Returns:
            The queued task; await ``task.future`` for its result
        """
        if self._shutdown:
            raise RuntimeError("TaskScheduler is shutting down")
        if kind not in self._handlers:
            raise UnknownOperation(kind)

        # Tasks belong to the loop they were submitted from; a host may drive
        # successive requests with separate asyncio.run() calls
        loop = asyncio.get_running_loop()

        task = ProcessingTask(
            task_id=uuid.uuid4().hex,
            kind=kind,
            payload=payload,
            future=loop.create_future(),
            callback=callback
        )
        task.future.add_done_callback(
            lambda future, task_id=task.task_id: self._on_future_done(task_id, future))

        self._queue.append(task)
        self.active_tasks[task.task_id] = task
        self.stats['tasks_submitted'] += 1
        logger.debug(f"Submitted task {task.task_id} ({kind}), queue size {len(self._queue)}")

        self._dispatch_next()
        return task

    async def run(self, kind: str, payload: Any) -> Any:
        """Submit a task and wait for its result."""
        task = self.submit(kind, payload)
        return await task.future

    def cancel(self, task_id: str) -> bool:
        """
        Cancel a queued or in-flight task.

        A queued task leaves the queue and never starts. An in-flight task
        keeps running in the worker but its result is dropped on arrival.

        Returns:
            True if the task was cancelled, False if unknown or finished
        """
        task = self.active_tasks.get(task_id)
        if task is None or task.is_completed:
            return False

        task.callback = None
        if task.state == TaskState.QUEUED:
            self._queue.remove(task)
            self._move_to_completed(task)
            logger.debug(f"Cancelled queued task {task_id}")
        else:
            logger.debug(f"Cancelled in-flight task {task_id}, result will be dropped")

        task.state = TaskState.CANCELLED
        task.completed_at = time.time()
        self.stats['tasks_cancelled'] += 1
        if not task.future.done() and not self._loop_closed(task):
            task.future.cancel()
        return True

    def get_task_status(self, task_id: str) -> Optional[ProcessingTask]:
        """Get current status of a task."""
        return self.active_tasks.get(task_id) or self.completed_tasks.get(task_id)

    def get_queue_stats(self) -> Dict[str, Any]:
        """Get current queue and processing statistics."""
        return {
            'queue_size': len(self._queue),
            'in_flight': self._in_flight.task_id if self._in_flight else None,
            'active_tasks': len(self.active_tasks),
            'completed_tasks': len(self.completed_tasks),
            **self.stats
        }

    def shutdown(self, wait: bool = True):
        """
        Shutdown the scheduler.

        Args:
            wait: Whether to wait for the in-flight handler to return
        """
        logger.info("Shutting down TaskScheduler...")
        self._shutdown = True

        for task_id in list(self.active_tasks):
            self.cancel(task_id)

        self.executor.shutdown(wait=wait)
        logger.info("TaskScheduler shutdown complete")

    def _dispatch_next(self):
        """Start the next queued task if the worker is idle."""
        self._release_abandoned()

        while self._in_flight is None and not self._shutdown and self._queue:
            task = self._queue.popleft()
            if self._loop_closed(task):
                self._abandon(task)
                continue

            handler = self._handlers[task.kind]
            try:
                worker_future = task.future.get_loop().run_in_executor(
                    self.executor, handler, task.payload)
            except RuntimeError as e:
                self._fail(task, e)
                self._invoke_callback(task)
                self._move_to_completed(task)
                continue

            task.state = TaskState.IN_FLIGHT
            task.started_at = time.time()
            self._in_flight = task
            logger.debug(f"Started task {task.task_id} ({task.kind})")
            worker_future.add_done_callback(
                lambda future, task=task: self._on_worker_done(task, future))

    def _release_abandoned(self):
        # An in-flight task whose loop has closed will never report back
        task = self._in_flight
        if task is not None and self._loop_closed(task):
            self._in_flight = None
            self._abandon(task)

    def _abandon(self, task: ProcessingTask):
        if not task.is_completed:
            task.state = TaskState.CANCELLED
            task.completed_at = time.time()
            self.stats['tasks_cancelled'] += 1
        logger.warning(f"Dropped task {task.task_id}: its event loop is closed")
        self._move_to_completed(task)

    @staticmethod
    def _loop_closed(task: ProcessingTask) -> bool:
        return task.future.get_loop().is_closed()

    def _fail(self, task: ProcessingTask, error: Exception):
        failure = WorkerFailure(task.task_id, str(error))
        failure.__cause__ = error
        task.state = TaskState.FAILED
        task.error = failure
        task.completed_at = time.time()
        self.stats['tasks_failed'] += 1
        logger.error(f"Task {task.task_id} failed: {error}")
        if not task.future.done():
            task.future.set_exception(failure)

    def _on_worker_done(self, task: ProcessingTask, worker_future: asyncio.Future):
        """Record a finished handler and move on; runs on the event loop."""
        self._in_flight = None

        if task.state == TaskState.CANCELLED:
            self._consume(worker_future)
            logger.debug(f"Dropped result of cancelled task {task.task_id}")
        else:
            task.completed_at = time.time()
            try:
                result = worker_future.result()
            except asyncio.CancelledError:
                task.state = TaskState.CANCELLED
                self.stats['tasks_cancelled'] += 1
                if not task.future.done():
                    task.future.cancel()
            except Exception as e:
                self._fail(task, e)
            else:
                task.state = TaskState.COMPLETED
                task.result = result
                self.stats['tasks_completed'] += 1
                self.stats['total_processing_time'] += task.duration or 0.0
                logger.debug(f"Completed task {task.task_id} in {task.duration or 0.0:.3f}s")
                if not task.future.done():
                    task.future.set_result(result)

            self._invoke_callback(task)

        self._move_to_completed(task)
        self._dispatch_next()

    def _on_future_done(self, task_id: str, future: asyncio.Future):
        # A caller cancelling its await (e.g. a timeout) cancels the task
        if future.cancelled():
            self.cancel(task_id)

    def _invoke_callback(self, task: ProcessingTask):
        if task.callback:
            try:
                task.callback(task)
            except Exception as e:
                logger.error(f"Task callback failed: {e}")

    @staticmethod
    def _consume(worker_future: asyncio.Future):
        if not worker_future.cancelled():
            error = worker_future.exception()
            if error is not None:
                logger.debug(f"Cancelled task raised after cancellation: {error}")

    def _move_to_completed(self, task: ProcessingTask):
        """Move task from active to completed, keeping a bounded record."""
        self.active_tasks.pop(task.task_id, None)
        self.completed_tasks[task.task_id] = task
        while len(self.completed_tasks) > MAX_COMPLETED_TASKS:
            self.completed_tasks.popitem(last=False)
