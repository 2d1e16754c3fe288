import logging
import threading
import time
from queue import Empty, Queue
from typing import List, Sequence

import tqdm

from vidprep_lib.data.schemas import BatchReport, Clip
from vidprep_lib.errors import BatchProcessingError, ClipProcessingError
from vidprep_lib.pipeline.clip_pipeline import ClipPipeline

logger = logging.getLogger(__name__)


class ParallelOrchestrator:
    """Run a ClipPipeline over many clips with a bounded pool of threads.

    Every clip is loaded into one shared queue before the workers start.
    Workers drain the queue independently; a failing clip is recorded and the
    worker moves on, so one bad clip never cancels its siblings. Once the
    queue is empty all failures are raised together as BatchProcessingError.

    Attributes:
        pipeline: Per-clip processing pipeline
        workers: Number of worker threads, at least 1
        show_progress: Display a tqdm progress bar

    Example:
        ```python
        orchestrator = ParallelOrchestrator(pipeline, workers=4)
        report = orchestrator.run(clips)
        ```
    """

    def __init__(self, pipeline: ClipPipeline, workers: int = 4, show_progress: bool = False) -> None:
        self.pipeline = pipeline
        self.workers = max(1, workers)
        self.show_progress = show_progress

    def _worker(
        self,
        jobs: Queue,
        report: BatchReport,
        failures: List[ClipProcessingError],
        lock: threading.Lock,
        progress: tqdm.tqdm,
    ) -> None:
        while True:
            try:
                clip = jobs.get_nowait()
            except Empty:
                return

            try:
                artifacts = self.pipeline.process(clip)
            except Exception as e:
                if not isinstance(e, ClipProcessingError):
                    logger.error(f"Unexpected error on clip {clip.key}: {e}")
                    e = ClipProcessingError(clip.key, e)
                with lock:
                    failures.append(e)
                    report.failed_keys.append(clip.key)
                    progress.update(1)
                continue

            with lock:
                report.chunks_per_clip[clip.key] = len(artifacts)
                progress.update(1)

    def run(self, clips: Sequence[Clip]) -> BatchReport:
        """Process every clip and report the outcome.

        Args:
            clips: Clips of the batch, keys must be unique

        Returns:
            BatchReport: Chunk counts per clip and elapsed time

        Raises:
            BatchProcessingError: If at least one clip failed. Carries every
                ClipProcessingError and the report of the whole batch.
        """
        start = time.monotonic()
        jobs: Queue = Queue()
        for clip in clips:
            jobs.put(clip)

        report = BatchReport()
        failures: List[ClipProcessingError] = []
        lock = threading.Lock()
        num_workers = min(self.workers, max(1, len(clips)))
        logger.info(f"Processing {len(clips)} clips using {num_workers} workers")

        with tqdm.tqdm(total=len(clips), unit="clip", disable=not self.show_progress) as progress:
            threads = [
                threading.Thread(
                    target=self._worker,
                    args=(jobs, report, failures, lock, progress),
                    name=f"clip-worker-{i}",
                    daemon=True,
                )
                for i in range(num_workers)
            ]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        report.elapsed_seconds = time.monotonic() - start

        if failures:
            raise BatchProcessingError(failures, report)

        logger.info(
            f"Processed {len(clips)} clips into {report.total_chunks} chunks "
            f"in {report.elapsed_seconds:.2f}s"
        )
        return report
