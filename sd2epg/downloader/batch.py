"""
sd2epg.downloader.batch - Bounded parallel batch fetching

Splits large identifier sets into provider sized batches and runs them on a
bounded worker pool. The caller blocks until every batch has completed.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, Iterable, List, Optional

from .statistics import DownloadStatistics
from .tasks import BatchResult, BatchTask, partition_ids, unique_ids


class ResponseCollector:
    """Lock protected aggregation of records appended by worker threads"""

    def __init__(self):
        self.lock = threading.Lock()
        self.batches: Dict[int, List[Any]] = {}

    def extend(self, batch_index: int, records: Iterable[Any]) -> int:
        items = list(records)
        with self.lock:
            self.batches.setdefault(batch_index, []).extend(items)
        return len(items)

    def __len__(self) -> int:
        with self.lock:
            return sum(len(items) for items in self.batches.values())

    def items(self) -> List[Any]:
        """All records, flattened in batch order"""
        with self.lock:
            return [item for index in sorted(self.batches) for item in self.batches[index]]


class BatchFetcher:
    """Dispatches batches of ids to a bounded pool of worker threads"""

    def __init__(self, default_parallel: int = 4):
        self.default_parallel = max(1, default_parallel)
        self.statistics = DownloadStatistics()
        self.last_report: List[BatchResult] = []

    def fetch_all(
        self,
        ids: Iterable[str],
        batch_size: int,
        max_parallel: Optional[int],
        fetch_fn: Callable[[List[str]], Optional[Iterable[Any]]],
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> List[Any]:
        """
        Fetch all ids in bounded size batches with bounded parallelism

        Args:
            ids: Identifiers to request, duplicates are requested once
            batch_size: Maximum ids per provider request
            max_parallel: Maximum batches in flight (None = fetcher default)
            fetch_fn: Function requesting one batch, returns records or None
            progress_callback: Optional callback(completed_batches, total_batches)

        Returns:
            List: Records of every batch, in batch order
        """
        tasks = partition_ids(unique_ids(ids), batch_size)
        self.last_report = []
        collector = ResponseCollector()

        if not tasks:
            return []

        workers = min(max_parallel or self.default_parallel, len(tasks))
        logging.info(
            "Fetching %d ids in %d batches (batch size %d, %d workers)",
            sum(task.size for task in tasks),
            len(tasks),
            batch_size,
            workers,
        )

        completed = 0
        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_to_task = {
                executor.submit(self._execute_batch, task, fetch_fn, collector): task
                for task in tasks
            }

            for future in as_completed(future_to_task):
                task = future_to_task[future]
                try:
                    result = future.result()
                except Exception as e:
                    logging.error("Error processing batch %d: %s", task.batch_index, str(e))
                    result = BatchResult(task.batch_index, success=False, error=str(e))
                    self.statistics.record_failure()

                self.last_report.append(result)
                completed += 1
                if progress_callback:
                    progress_callback(completed, len(tasks))

        self.last_report.sort(key=lambda r: r.batch_index)
        self.statistics.update_total_time()

        failed = [r.batch_index for r in self.last_report if not r.success]
        if failed:
            logging.warning("  %d of %d batches returned no data", len(failed), len(tasks))

        return collector.items()

    def _execute_batch(
        self,
        task: BatchTask,
        fetch_fn: Callable[[List[str]], Optional[Iterable[Any]]],
        collector: ResponseCollector,
    ) -> BatchResult:
        start_time = time.time()
        logging.debug("  Batch %d: requesting %d ids", task.batch_index, task.size)

        try:
            records = fetch_fn(task.ids)
        except Exception as e:
            # A failing batch never aborts the others
            logging.warning("  Batch %d failed: %s", task.batch_index, str(e))
            self.statistics.record_failure()
            return BatchResult(
                task.batch_index, success=False, duration=time.time() - start_time, error=str(e)
            )

        if records is None:
            self.statistics.record_empty()
            return BatchResult(task.batch_index, success=False, duration=time.time() - start_time)

        count = collector.extend(task.batch_index, records)
        self.statistics.record_success(count)
        logging.debug("  Batch %d: %d records received", task.batch_index, count)
        return BatchResult(
            task.batch_index, success=True, records=count, duration=time.time() - start_time
        )

    def get_statistics(self) -> Dict[str, Any]:
        stats = self.statistics.get_stats_copy()
        stats["success_rate"] = self.statistics.get_success_rate()
        return stats
