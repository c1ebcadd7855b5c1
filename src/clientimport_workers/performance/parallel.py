"""
Ordered parallel chunk processing

Splits a row sequence into chunks, processes the chunks on a thread pool
and re-assembles the results by chunk index so that output order always
equals input order.
"""
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from os import cpu_count
from typing import Any, Callable, List, Optional, Sequence

import structlog

from ..config import settings

logger = structlog.get_logger(__name__)

# processor(chunk, start_index) -> results for that chunk, in chunk order
ChunkProcessor = Callable[[Sequence[Any], int], List[Any]]
# on_error(chunk, start_index, exception) -> replacement results
ChunkErrorHandler = Callable[[Sequence[Any], int, Exception], List[Any]]


@dataclass
class ProcessingMetrics:
    """Timing of one parallel run"""
    items: int = 0
    chunks: int = 0
    failed_chunks: int = 0
    workers: int = 1
    start_time: float = 0.0
    end_time: float = 0.0

    @property
    def processing_time_ms(self) -> int:
        return int((self.end_time - self.start_time) * 1000)

    @property
    def items_per_second(self) -> float:
        elapsed = self.end_time - self.start_time
        return self.items / elapsed if elapsed > 0 else 0.0


def chunk_ranges(total: int, chunk_size: int) -> List[range]:
    """Contiguous index ranges covering ``total`` items"""
    chunk_size = max(1, chunk_size)
    return [range(start, min(start + chunk_size, total)) for start in range(0, total, chunk_size)]


class ParallelProcessor:
    """Thread pool processor that keeps results in input order"""

    def __init__(self, max_workers: Optional[int] = None, chunk_size: Optional[int] = None):
        self.max_workers = max_workers or min(settings.max_workers, cpu_count() or 1)
        self.chunk_size = chunk_size or settings.chunk_size
        self.metrics = ProcessingMetrics(workers=self.max_workers)
        self._metrics_lock = threading.Lock()

    def process_in_chunks(
        self,
        items: Sequence[Any],
        processor: ChunkProcessor,
        on_error: Optional[ChunkErrorHandler] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> List[Any]:
        """Process ``items`` chunk-wise in parallel and return flattened results

        ``progress_callback(done, total)`` is called from the calling thread
        as chunks complete.
        """
        items = list(items)
        ranges = chunk_ranges(len(items), self.chunk_size)
        self.metrics = ProcessingMetrics(items=len(items), chunks=len(ranges), workers=self.max_workers)
        self.metrics.start_time = time.time()

        chunk_results: List[Optional[List[Any]]] = [None] * len(ranges)
        done = 0

        try:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                future_to_chunk = {}
                for chunk_index, index_range in enumerate(ranges):
                    chunk = items[index_range.start:index_range.stop]
                    future = executor.submit(
                        self._safe_process_chunk, chunk, index_range.start, processor, on_error
                    )
                    future_to_chunk[future] = chunk_index

                # Collect results as they complete, placed by chunk index
                for future in as_completed(future_to_chunk):
                    chunk_index = future_to_chunk[future]
                    chunk_results[chunk_index] = future.result()
                    done += len(ranges[chunk_index])
                    if progress_callback:
                        progress_callback(done, len(items))
        finally:
            self.metrics.end_time = time.time()

        logger.info(
            "Parallel processing completed",
            items=len(items),
            chunks=len(ranges),
            failed_chunks=self.metrics.failed_chunks,
            parallel_workers=self.max_workers,
            processing_time_ms=self.metrics.processing_time_ms,
        )

        results: List[Any] = []
        for chunk_result in chunk_results:
            results.extend(chunk_result or [])
        return results

    def _safe_process_chunk(
        self,
        chunk: Sequence[Any],
        start_index: int,
        processor: ChunkProcessor,
        on_error: Optional[ChunkErrorHandler],
    ) -> List[Any]:
        """Process one chunk; a failing chunk is logged and handed to ``on_error``"""
        try:
            return processor(chunk, start_index)
        except Exception as e:
            with self._metrics_lock:
                self.metrics.failed_chunks += 1
            logger.error("Chunk processing failed", start_index=start_index, size=len(chunk), error=str(e))
            if on_error is None:
                raise
            return on_error(chunk, start_index, e)
