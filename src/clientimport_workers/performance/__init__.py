"""Batch processing helpers"""

from .parallel import ParallelProcessor, ProcessingMetrics, chunk_ranges

__all__ = ["ParallelProcessor", "ProcessingMetrics", "chunk_ranges"]
