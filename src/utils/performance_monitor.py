# ========================
# src/utils/performance_monitor.py
# ========================

"""
Performance Monitoring Utilities

Tracks run time, memory use and per-file throughput while the monthly
trip files stream through the pipeline.
"""

import time
import os
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Any, List, Optional

import psutil

logger = logging.getLogger(__name__)


class PerformanceMonitor:
    """
    Resource monitor for one pipeline run.
    Rows read and rides kept are counted per source file so slow or
    unusually dirty months stand out in the summary.
    """

    def __init__(self, name: str = "Trip pipeline", log_every_chunks: int = 100):
        """
        Args:
            name (str): Label used in log lines
            log_every_chunks (int): Log progress every N chunks
        """
        self.name = name
        self.log_every_chunks = log_every_chunks
        self.start_time = None
        self.end_time = None
        self.peak_memory_mb = 0.0
        self.rows_read = 0
        self.rides_kept = 0
        self.chunks_processed = 0
        self.files: List[Dict[str, Any]] = []
        self.summary: Dict[str, Any] = {}
        self._process = psutil.Process(os.getpid())

    @property
    def current_file(self) -> Optional[Dict[str, Any]]:
        return self.files[-1] if self.files else None

    def start_monitoring(self) -> None:
        self.start_time = time.time()
        self.peak_memory_mb = self._memory_mb()
        logger.info(f"{self.name} - monitoring started, memory {self.peak_memory_mb:.2f} MB")

    def start_file(self, file_path: Optional[str]) -> None:
        """
        Close the timing of the previous source file and open a new one.

        Args:
            file_path (str): Monthly file whose rows come next
        """
        now = time.time()
        self._close_file(now)
        self.files.append({
            'file': Path(file_path).name if file_path else None,
            'started': now,
            'seconds': 0.0,
            'rows_read': 0,
            'rides_kept': 0,
            'memory_mb': self._memory_mb()
        })
        logger.debug(f"{self.name} - reading {self.current_file['file']}")

    def update_progress(self, rows_read: int, rides_kept: int) -> None:
        """
        Record one processed chunk.

        Args:
            rows_read (int): Raw rows in the chunk
            rides_kept (int): Rows that passed cleaning
        """
        self.rows_read += rows_read
        self.rides_kept += rides_kept
        self.chunks_processed += 1
        if self.current_file is not None:
            self.current_file['rows_read'] += rows_read
            self.current_file['rides_kept'] += rides_kept

        memory = self._memory_mb()
        self.peak_memory_mb = max(self.peak_memory_mb, memory)

        if self.chunks_processed % self.log_every_chunks == 0:
            elapsed = time.time() - self.start_time
            rate = self.rows_read / elapsed if elapsed > 0 else 0
            logger.info(
                f"{self.name} - {self.chunks_processed} chunks, {self.rows_read:,} rows read, "
                f"{self.rides_kept:,} kept, {rate:.0f} rows/sec, memory {memory:.2f} MB"
            )

    def stop_monitoring(self) -> Dict[str, Any]:
        """
        Stop monitoring and return the run summary.

        Returns:
            dict: Timing, memory and per-file statistics
        """
        self.end_time = time.time()
        self._close_file(self.end_time)
        total_time = self.end_time - self.start_time if self.start_time else 0

        self.summary = {
            'name': self.name,
            'total_processing_time_seconds': total_time,
            'rows_read': self.rows_read,
            'rides_kept': self.rides_kept,
            'chunks_processed': self.chunks_processed,
            'rows_per_second': self.rows_read / total_time if total_time > 0 else 0,
            'peak_memory_usage_mb': self.peak_memory_mb,
            'files': [{k: v for k, v in f.items() if k != 'started'} for f in self.files]
        }
        self._log_summary()
        return self.summary

    def _close_file(self, now: float) -> None:
        if self.current_file is not None and not self.current_file['seconds']:
            self.current_file['seconds'] = now - self.current_file['started']

    def _log_summary(self) -> None:
        s = self.summary
        logger.info(
            f"{self.name} - {s['rows_read']:,} rows in {s['total_processing_time_seconds']:.2f}s "
            f"({s['rows_per_second']:.0f} rows/sec), peak memory {s['peak_memory_usage_mb']:.2f} MB"
        )
        for f in s['files']:
            logger.info(f"  {f['file']}: {f['rows_read']:,} rows, {f['rides_kept']:,} kept, {f['seconds']:.2f}s")

    def _memory_mb(self) -> float:
        """Resident memory of this process in MB."""
        return self._process.memory_info().rss / (1024 * 1024)


@contextmanager
def monitor_performance(name: str = "Trip pipeline"):
    """
    Monitor the enclosed block; the summary is on ``monitor.summary`` afterwards.

    Yields:
        PerformanceMonitor: Monitor instance
    """
    monitor = PerformanceMonitor(name)
    monitor.start_monitoring()
    try:
        yield monitor
    finally:
        monitor.stop_monitoring()
