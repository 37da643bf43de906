"""
Extraction Worker Pool

A fixed number of threads drain a job queue that is filled (and closed
with one stop sentinel per worker) before any worker starts. Each job
downloads one chunk, narrows it to uint32 and meshes it. Every job
produces exactly one ExtractionResult, whether it succeeded, failed or
was skipped after cancellation, so the consumer can always wait for
len(jobs) results.

A failing job never stops its worker. After every job the worker pauses
for the cool-down interval to bound the request rate against the Boss.
"""

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple

from ..common.errors import BossMeshError, ExtractionError, JobCancelledError
from ..geometry.mesh_extractor import MeshExtractor, to_extractor_volume
from .chunk_planner import ChunkDescriptor
from .fragment_registry import FragmentRegistry

logger = logging.getLogger(__name__)

_STOP = object()


@dataclass(frozen=True)
class ExtractionTarget:
    """Boss channel to mesh and its voxel size (x, y, z) in nanometers."""
    collection: str
    experiment: str
    channel: str
    resolution_nm: Tuple[float, float, float]


@dataclass(frozen=True)
class MeshJob:
    chunk: ChunkDescriptor
    target: ExtractionTarget
    output_dir: str
    prefix: str = "mesh"

    @property
    def fragment_prefix(self) -> str:
        """Fragments of this chunk are written to <output_dir>/<prefix>.<chunk id>.<object id>"""
        return f"{self.output_dir}/{self.prefix}.{self.chunk.chunk_id}"


@dataclass
class ExtractionResult:
    chunk_id: int
    fragment_count: int = 0
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ExtractionWorkerPool:
    """
    Bounded pool of mesh extraction workers.

    Usage:
        pool = ExtractionWorkerPool(client, extractor, registry, num_workers=10)
        for result in pool.run(jobs):
            if result.error:
                pool.cancel()
    """

    def __init__(
        self,
        client,
        extractor: MeshExtractor,
        registry: FragmentRegistry,
        num_workers: int = 10,
        cooldown_s: float = 15.0
    ):
        """
        Args:
            client: Object with a BossClient-compatible cutout() method
            extractor: Meshes each chunk and reports fragments through a callback
            registry: Receives every fragment the extractor reports
            num_workers: Number of worker threads
            cooldown_s: Pause after each job, per worker
        """
        if num_workers < 1:
            raise ValueError(f"num_workers must be at least 1 (got {num_workers})")
        self.client = client
        self.extractor = extractor
        self.registry = registry
        self.num_workers = num_workers
        self.cooldown_s = cooldown_s

        self._jobs: "queue.Queue" = queue.Queue()
        self._results: "queue.Queue[ExtractionResult]" = queue.Queue()
        self._cancelled = threading.Event()
        self._wake = threading.Event()
        self._threads: List[threading.Thread] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Skip every job not yet started and cut the current cool-downs short."""
        if not self._cancelled.is_set():
            logger.warning("Cancelling remaining extraction jobs")
        self._cancelled.set()
        self._wake.set()

    def _record_fragment(self, path: str, object_id: int, chunk_id: int) -> None:
        self.registry.record(chunk_id, object_id, path)

    def process(self, job: MeshJob) -> ExtractionResult:
        """Run one job end to end: cutout, narrow to uint32, mesh."""
        chunk = job.chunk
        target = job.target
        try:
            raw = self.client.cutout(
                target.collection,
                target.experiment,
                target.channel,
                chunk.x_range,
                chunk.y_range,
                chunk.z_range,
                chunk.resolution
            )
            volume = to_extractor_volume(raw, chunk.shape, chunk.chunk_id)
            n_fragments = self.extractor.extract(
                volume,
                chunk.chunk_id,
                job.fragment_prefix,
                chunk.shape,
                chunk.offset,
                target.resolution_nm,
                self._record_fragment
            )
        except BossMeshError as e:
            logger.error(f"Chunk {chunk.chunk_id} failed: {e}")
            return ExtractionResult(chunk.chunk_id, 0, e)
        except Exception as e:
            logger.exception(f"Chunk {chunk.chunk_id} failed unexpectedly")
            error = ExtractionError(f"chunk {chunk.chunk_id}: {type(e).__name__}: {e}", chunk.chunk_id)
            error.__cause__ = e
            return ExtractionResult(chunk.chunk_id, 0, error)

        recorded = len(self.registry.chunk_entries(chunk.chunk_id))
        if recorded != n_fragments:
            logger.warning(
                f"Chunk {chunk.chunk_id}: extractor reported {n_fragments} fragments "
                f"but {recorded} were recorded"
            )
        return ExtractionResult(chunk.chunk_id, n_fragments)

    def _worker(self, worker_id: int) -> None:
        while True:
            job = self._jobs.get()
            if job is _STOP:
                break

            if self._cancelled.is_set():
                chunk_id = job.chunk.chunk_id
                self._results.put(ExtractionResult(chunk_id, 0, JobCancelledError(chunk_id)))
                continue

            self._results.put(self.process(job))

            # politeness delay; returns early on cancel() or close()
            self._wake.wait(self.cooldown_s)

        logger.debug(f"Worker {worker_id} finished")

    def run(self, jobs: Iterable[MeshJob]) -> Iterator[ExtractionResult]:
        """
        Enqueue all jobs, start the workers and yield one result per job.

        Results arrive in completion order, not chunk order. Workers are
        started lazily on the first iteration and joined after the last
        result has been yielded.
        """
        if self._threads:
            raise RuntimeError("worker pool has already been started")

        jobs = list(jobs)
        for job in jobs:
            self._jobs.put(job)
        for _ in range(self.num_workers):
            self._jobs.put(_STOP)

        for worker_id in range(self.num_workers):
            thread = threading.Thread(
                target=self._worker,
                args=(worker_id,),
                name=f"mesh-worker-{worker_id}",
                daemon=True
            )
            thread.start()
            self._threads.append(thread)

        logger.info(f"Sent {len(jobs)} jobs to {self.num_workers} threads for extraction.")

        pending = len(jobs)
        try:
            while pending:
                result = self._results.get()
                pending -= 1
                yield result
        finally:
            if pending:
                # consumer stopped early; skip what is left
                self.cancel()
            self.close()

    def close(self) -> None:
        """End pending cool-downs and join the worker threads."""
        self._wake.set()
        for thread in self._threads:
            thread.join()
