import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple


@dataclass
class Job:
    id: str
    run: Callable[[], Any]
    status: str = "pending"  # pending | running | done | failed
    error: Optional[str] = None
    result: Any = None


class JobManager:
    """Runs independent jobs on a thread pool and logs a periodic summary.

    Used to acquire images for several sections at once. Jobs share no
    state; callers read `job.result` after `run()` returns.
    """

    def __init__(self, max_workers: int, status_interval_sec: float = 2.0) -> None:
        self.max_workers = max(1, int(max_workers or 1))
        self.status_interval_sec = max(0.05, float(status_interval_sec))
        self.jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()

    def add_job(self, job: Job) -> None:
        with self._lock:
            if job.id in self.jobs:
                raise ValueError(f"Duplicate job id: {job.id}")
            self.jobs[job.id] = job

    def counts(self) -> Tuple[int, int, int, int]:
        with self._lock:
            statuses = [j.status for j in self.jobs.values()]
        return (
            statuses.count("pending"),
            statuses.count("running"),
            statuses.count("done"),
            statuses.count("failed"),
        )

    def _status_loop(self) -> None:
        while not self._stop_event.wait(self.status_interval_sec):
            pending, running, done, failed = self.counts()
            logging.info("Jobs: pending=%d running=%d done=%d failed=%d", pending, running, done, failed)

    def _mark(self, job: Job, status: str, error: Optional[str] = None) -> None:
        with self._lock:
            job.status = status
            job.error = error

    def _runner(self, job: Job) -> None:
        self._mark(job, "running")
        try:
            job.result = job.run()
        except Exception as exc:
            self._mark(job, "failed", error=str(exc))
            logging.error("Job %s failed: %s", job.id, exc)
            raise
        self._mark(job, "done")

    def run(self) -> Tuple[int, int, int, int]:
        """Run all added jobs. Blocks until all completed.

        Returns a tuple: (pending, running, done, failed) at completion time.
        """
        status_thread = threading.Thread(target=self._status_loop, daemon=True)
        status_thread.start()
        try:
            with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="acquire") as pool:
                futures = [pool.submit(self._runner, job) for job in list(self.jobs.values())]
                for fut in as_completed(futures):
                    # failures are recorded on the job
                    fut.exception()
        finally:
            self._stop_event.set()
            status_thread.join(timeout=1.0)

        pending, running, done, failed = self.counts()
        logging.info("Jobs finished: done=%d failed=%d", done, failed)
        return pending, running, done, failed
