# Background resize workers, embedded in the API process or run standalone
import logging
import signal
import threading
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from .config import settings
from .database import create_db_and_tables, session_scope
from .application.ports.job_queue import Delivery, JobQueue, ResizeJob
from .bootstrap import build_resize_worker, get_job_queue

logger = logging.getLogger(__name__)


def parse_job(payload: Optional[Dict[str, Any]]) -> Optional[ResizeJob]:
    if not payload:
        return None
    try:
        return ResizeJob.model_validate(payload)
    except ValidationError as e:
        logger.error(f"Invalid resize job payload {payload}: {e}")
        return None


def run_resize_job(job: Optional[ResizeJob]) -> None:
    with session_scope() as session:
        build_resize_worker(session).handle(job)


class WorkerRunner:
    def __init__(self, job_queue: JobQueue, handle_job: Callable[[Optional[ResizeJob]], None] = run_resize_job,
                 topic: str = None, concurrency: int = None, poll_timeout: float = None) -> None:
        self.job_queue = job_queue
        self.handle_job = handle_job
        self.topic = topic or settings.IMAGE_PROCESSING_QUEUE
        self.concurrency = concurrency or settings.WORKER_CONCURRENCY
        self.poll_timeout = poll_timeout or settings.QUEUE_POLL_TIMEOUT_SECONDS
        self._stop = threading.Event()
        self._threads: List[threading.Thread] = []

    @property
    def running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        requeued = self.job_queue.requeue_unacked(self.topic)
        if requeued:
            logger.info(f"Recovered {requeued} job(s) left over on {self.topic}")
        self._threads = [
            threading.Thread(target=self._run, name=f"resize-worker-{i}", daemon=True)
            for i in range(self.concurrency)
        ]
        for t in self._threads:
            t.start()
        logger.info(f"Started {self.concurrency} resize worker(s) on {self.topic}")

    def stop(self, timeout: float = 10.0) -> None:
        self._stop.set()
        for t in self._threads:
            t.join(timeout)
        self._threads = []
        logger.info("Resize workers stopped")

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                delivery = self.job_queue.dequeue(self.topic, self.poll_timeout)
            except Exception as e:
                logger.error(f"Failed to read from queue {self.topic}: {e}")
                self._stop.wait(self.poll_timeout)
                continue
            if delivery is not None:
                self.process_delivery(delivery)

    def process_delivery(self, delivery: Delivery) -> None:
        job = parse_job(delivery.payload)
        try:
            self.handle_job(job)
        except Exception as e:
            logger.error(f"Unhandled error for job {delivery.payload}: {e}", exc_info=True)
        finally:
            self.job_queue.ack(delivery)


def main() -> None:
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO), format=settings.LOG_FORMAT)
    create_db_and_tables()
    runner = WorkerRunner(get_job_queue())
    stopped = threading.Event()

    def _shutdown(signum, frame):
        logger.info(f"Received signal {signum}, shutting down")
        stopped.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)
    runner.start()
    stopped.wait()
    runner.stop()


if __name__ == "__main__":
    main()
