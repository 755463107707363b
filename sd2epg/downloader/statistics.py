"""
sd2epg.downloader.statistics - Fetch statistics tracking

Thread-safe statistics collection for batched downloads.
"""

import threading
import time
from typing import Any, Dict


class DownloadStatistics:
    """Thread-safe download statistics tracker"""

    def __init__(self):
        self.stats = {
            'batches': 0,
            'successful': 0,
            'failed': 0,
            'empty': 0,
            'records': 0,
            'total_time': 0.0,
        }
        self.lock = threading.RLock()
        self.start_time = time.time()

    def record_success(self, records: int):
        with self.lock:
            self.stats['batches'] += 1
            self.stats['successful'] += 1
            self.stats['records'] += records

    def record_empty(self):
        """Record a batch that returned no data"""
        with self.lock:
            self.stats['batches'] += 1
            self.stats['empty'] += 1

    def record_failure(self):
        with self.lock:
            self.stats['batches'] += 1
            self.stats['failed'] += 1

    def update_total_time(self):
        with self.lock:
            self.stats['total_time'] = time.time() - self.start_time

    def get_stats_copy(self) -> Dict[str, Any]:
        with self.lock:
            return self.stats.copy()

    def get_success_rate(self) -> float:
        """Success rate of batches that returned data"""
        with self.lock:
            total = self.stats['batches']
            if total == 0:
                return 100.0
            return (self.stats['successful'] / total) * 100.0
