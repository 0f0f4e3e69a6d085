"""
=============================================================================
WORKER THREAD POOL
=============================================================================

A fixed set of worker threads fed from a bounded queue. The accept thread
submits one task per connection; a worker runs the whole request (parse,
middlewares, handler, send) synchronously.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        POOL LAYOUT                                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   accept thread ──submit()──►  [ task | task | task ]  bounded      │
    │                                    │      │      │                   │
    │                                    ▼      ▼      ▼                   │
    │                                 Worker Worker Worker                 │
    │                                                                      │
    │   Queue full → submit() returns False → caller answers 503         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Shutdown uses poison pills: one None per worker is queued behind the
pending tasks, so in-flight and already-queued work completes first.

=============================================================================
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional


logger = logging.getLogger(__name__)


@dataclass
class Task:
    """A deferred call: func(*args)."""

    func: Callable[..., Any]
    args: tuple = ()
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """
    Worker thread: take a task, run it, repeat until a poison pill arrives.

    Exceptions raised by a task are logged and counted; they never kill
    the worker.
    """

    def __init__(self, task_queue: queue.Queue, worker_id: int):
        super().__init__(name=f"webhelper-worker-{worker_id}", daemon=True)
        self.task_queue = task_queue
        self.worker_id = worker_id
        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")
        while True:
            task = self.task_queue.get()
            try:
                if task is None:
                    break
                self._execute_task(task)
            finally:
                self.task_queue.task_done()
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        start_time = time.time()
        try:
            task.func(*task.args)
            self.tasks_completed += 1
        except Exception as e:
            elapsed = time.time() - start_time
            logger.exception(f"Worker {self.worker_id} task failed after {elapsed:.3f}s: {e}")
            self.tasks_failed += 1


class ThreadPool:
    """
    Fixed-size thread pool with a bounded task queue.

    Usage:
        pool = ThreadPool(workers=8, queue_size=128)
        pool.start()
        if not pool.submit(process_connection, conn):
            reject(conn)            # queue full
        pool.shutdown(wait=True)
    """

    def __init__(self, workers: int = 8, queue_size: int = 128):
        self.num_workers = workers
        self.queue_size = queue_size
        self._task_queue: "queue.Queue[Optional[Task]]" = queue.Queue(maxsize=queue_size)
        self._workers: List[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._shutdown = False

    @property
    def is_running(self) -> bool:
        return self._started and not self._shutdown

    def start(self):
        """Start all worker threads. Calling it twice is harmless."""
        with self._lock:
            if self._started:
                return
            logger.info(f"Starting thread pool with {self.num_workers} workers")
            for worker_id in range(self.num_workers):
                worker = Worker(self._task_queue, worker_id)
                self._workers.append(worker)
                worker.start()
            self._started = True

    def submit(self, func: Callable[..., Any], *args: Any) -> bool:
        """
        Queue func(*args) without blocking.

        Returns:
            True if queued, False if the queue is full.

        Raises:
            RuntimeError: If the pool is not running.
        """
        if not self.is_running:
            raise RuntimeError("Thread pool is not running")
        try:
            self._task_queue.put_nowait(Task(func=func, args=args))
            return True
        except queue.Full:
            return False

    def shutdown(self, wait: bool = True, timeout: Optional[float] = 30.0):
        """
        Stop accepting tasks and let workers drain the queue.

        Args:
            wait: Join the worker threads.
            timeout: Per-worker join timeout in seconds.
        """
        with self._lock:
            if not self._started or self._shutdown:
                return
            self._shutdown = True

        logger.info("Shutting down thread pool...")
        for _ in self._workers:
            self._task_queue.put(None)

        if wait:
            for worker in self._workers:
                worker.join(timeout=timeout)
                if worker.is_alive():
                    logger.warning(f"Worker {worker.worker_id} did not stop in time")

    @property
    def stats(self) -> dict:
        return {
            "workers": len(self._workers),
            "queued": self._task_queue.qsize(),
            "completed": sum(w.tasks_completed for w in self._workers),
            "failed": sum(w.tasks_failed for w in self._workers),
        }
