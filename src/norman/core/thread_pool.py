"""
=============================================================================
WORKER POOL
=============================================================================

A fixed set of worker threads draining one shared job queue. The acceptor
thread only ever calls submit(); running the command and delivering the
response happen on a worker, so accepting is never blocked by execution.

=============================================================================
POOL ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          WorkerPool                                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   submit(job) ──► ┌───────────────────────────────────────────┐     │
    │                   │  JOB QUEUE (queue.Queue, unbounded)        │     │
    │                   │  [Job] [Job] [Job] ... [TERMINATE] ...     │     │
    │                   └────────────────────┬──────────────────────┘     │
    │                                        │ get() (blocking)           │
    │                                        ▼                            │
    │        ┌──────────┐ ┌──────────┐ ┌──────────┐ ┌──────────┐          │
    │        │ Worker 0 │ │ Worker 1 │ │ Worker 2 │ │ Worker 3 │          │
    │        └──────────┘ └──────────┘ └──────────┘ └──────────┘          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    - The queue is the multi-producer, multi-consumer channel. It has no
      size limit, so submit() never blocks: under sustained overload jobs
      are delayed, never dropped.
    - Whichever worker is idle first claims the next job. Arrival order is
      FIFO, completion order is not.

=============================================================================
SHUTDOWN
=============================================================================

    pool.shutdown()
        └─ put TERMINATE once per worker (behind any pending jobs)
        └─ join every worker, one after another, no timeout

A worker always finishes its current job before it can see a sentinel, so
nothing is killed mid-execution and every job submitted before shutdown()
runs to completion.

KNOWN RACE: a job submitted concurrently with shutdown() can land behind
some of the sentinels and never run. Callers must stop submitting before
they call shutdown().

KNOWN WEAKNESS: there are no timeouts and no cancellation. A job that
never returns (a hung command, an unreachable delivery port) holds its
worker forever and the pool permanently loses that capacity.

=============================================================================
"""

import threading
import queue
import time
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional, Any, Union
from enum import Enum


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    """
    Worker thread states.

    Used for monitoring and debugging the pool.
    """
    IDLE = "idle"      # Waiting for a job
    BUSY = "busy"      # Running a job
    STOPPED = "stopped"  # Thread exited


class Job(ABC):
    """
    One unit of work for the pool.

    A job is consumed exactly once, by whichever worker claims it. Keeping
    the contract to a single run() method means jobs can be unit-tested on
    their own, without a pool.
    """

    @abstractmethod
    def run(self) -> None:
        """Do the work. Exceptions are logged by the worker."""


class FunctionJob(Job):
    """
    Adapts a plain callable to the Job interface.

    A deferred function call: "call this function with these arguments
    later".
    """

    def __init__(self, func: Callable[..., Any], args: tuple = (), kwargs: dict = None):
        self.func = func
        self.args = args
        self.kwargs = kwargs or {}

    def run(self) -> None:
        self.func(*self.args, **self.kwargs)

    def __repr__(self) -> str:
        name = getattr(self.func, "__name__", repr(self.func))
        return f"FunctionJob({name})"


class _Terminate:
    """Sentinel message telling a worker to exit its loop."""

    def __repr__(self) -> str:
        return "TERMINATE"


TERMINATE = _Terminate()

Message = Union[Job, _Terminate]


class Worker(threading.Thread):
    """
    Worker thread that processes jobs from the shared queue.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Worker Loop                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. Block on the queue until a message arrives                      │
    │          │                                                           │
    │          ├── TERMINATE → exit loop, thread ends                      │
    │          │                                                           │
    │          └── Job → run it                                            │
    │                  │                                                   │
    │                  └── exception → log it, count as failed             │
    │                                                                      │
    │   2. Go back to step 1                                               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    A failing job aborts only that job. The worker itself survives and
    returns to the queue, so one bad connection cannot shrink the pool.
    """

    def __init__(self, job_queue: "queue.Queue[Message]", worker_id: int):
        """
        Initialize the worker.

        Args:
            job_queue: Queue to pull jobs from.
            worker_id: Identifier for this worker (for logging).
        """
        super().__init__(name=f"Worker-{worker_id}", daemon=True)

        self.job_queue = job_queue
        self.worker_id = worker_id

        self.state = WorkerState.IDLE
        self._current_job: Optional[Job] = None

        # Metrics
        self.jobs_completed = 0
        self.jobs_failed = 0

    def run(self):
        """Main worker loop. Runs until a TERMINATE message is received."""
        logger.debug(f"Worker {self.worker_id} started")

        while True:
            message = self.job_queue.get()
            try:
                if message is TERMINATE:
                    logger.debug(f"Worker {self.worker_id} was told to terminate")
                    break
                self._execute_job(message)
            finally:
                self.job_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_job(self, job: Job):
        """
        Run a single job with state tracking, timing and error capture.

        Args:
            job: The job to run.
        """
        self.state = WorkerState.BUSY
        self._current_job = job
        start_time = time.time()

        logger.debug(f"Worker {self.worker_id} got a job; executing")

        try:
            job.run()

            elapsed = time.time() - start_time
            logger.debug(f"Worker {self.worker_id} completed job in {elapsed:.3f}s")
            self.jobs_completed += 1

        except Exception as e:
            elapsed = time.time() - start_time
            logger.exception(
                f"Worker {self.worker_id} job failed after {elapsed:.3f}s: {e}"
            )
            self.jobs_failed += 1

        finally:
            self.state = WorkerState.IDLE
            self._current_job = None


class WorkerPool:
    """
    Fixed-size pool of worker threads.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      WorkerPool Usage                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   pool = WorkerPool(4)              # workers start immediately     │
    │                                                                      │
    │   pool.submit(job)                  # any Job subclass              │
    │   pool.submit_call(func, args=(x,)) # or a plain callable           │
    │                                                                      │
    │   print(pool.stats)                                                  │
    │                                                                      │
    │   pool.shutdown()                   # runs pending jobs, then joins │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘
    """

    def __init__(self, size: int):
        """
        Create the pool and start its workers.

        Args:
            size: Number of worker threads.

        Raises:
            ValueError: If size is less than 1.
        """
        if size < 1:
            raise ValueError(f"Worker pool size must be >= 1, got {size}")

        self._size = size

        # One unbounded queue shared by every worker. queue.Queue does its
        # own locking, so producers and consumers need nothing else.
        self._job_queue: "queue.Queue[Message]" = queue.Queue()

        self._lock = threading.Lock()  # Protects _shutdown
        self._shutdown = False

        logger.info(f"Starting worker pool with {size} workers")

        self._workers: list[Worker] = []
        for worker_id in range(size):
            worker = Worker(job_queue=self._job_queue, worker_id=worker_id)
            self._workers.append(worker)
            worker.start()

    def submit(self, job: Job) -> None:
        """
        Queue a job and return without waiting for it to run.

        Args:
            job: The job to run.

        Raises:
            RuntimeError: If shutdown() has already been called.
        """
        with self._lock:
            if self._shutdown:
                raise RuntimeError("Worker pool is shutting down")

        # Not under the lock: if shutdown() runs between the check and the
        # put, this job can land behind TERMINATE messages and never run.
        self._job_queue.put(job)

    def submit_call(self, func: Callable[..., Any], args: tuple = (), kwargs: dict = None) -> None:
        """Submit a plain callable wrapped in a FunctionJob."""
        self.submit(FunctionJob(func, args=args, kwargs=kwargs))

    def shutdown(self) -> None:
        """
        Stop the pool after every already-queued job has run.

        Puts one TERMINATE per worker behind the pending jobs, then joins
        each worker in turn. There is no timeout: if a job never finishes,
        neither does shutdown(). Calling it twice is harmless.
        """
        with self._lock:
            if self._shutdown:
                return
            self._shutdown = True

        logger.info("Sending terminate message to all workers")

        for _ in self._workers:
            self._job_queue.put(TERMINATE)

        logger.info("Shutting down all workers")

        for worker in self._workers:
            logger.debug(f"Shutting down worker {worker.worker_id}")
            worker.join()

        logger.info("Worker pool shutdown complete")

    # =========================================================================
    # MONITORING: Check pool status
    # =========================================================================

    @property
    def size(self) -> int:
        """Number of workers the pool was created with."""
        return self._size

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    @property
    def active_workers(self) -> int:
        """Get count of active (non-stopped) workers."""
        return sum(1 for w in self._workers if w.state != WorkerState.STOPPED)

    @property
    def busy_workers(self) -> int:
        """Get count of busy workers."""
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def idle_workers(self) -> int:
        """Get count of idle workers."""
        return sum(1 for w in self._workers if w.state == WorkerState.IDLE)

    @property
    def queue_size(self) -> int:
        """Get current job queue size (sentinels included)."""
        return self._job_queue.qsize()

    @property
    def stats(self) -> dict:
        """
        Get pool statistics.

        Returns a dict with worker and job counts.
        """
        total_completed = sum(w.jobs_completed for w in self._workers)
        total_failed = sum(w.jobs_failed for w in self._workers)

        return {
            "workers": {
                "total": len(self._workers),
                "active": self.active_workers,
                "busy": self.busy_workers,
                "idle": self.idle_workers,
            },
            "jobs": {
                "queued": self._job_queue.qsize(),
                "completed": total_completed,
                "failed": total_failed,
            },
        }
