"""
sd2epg.downloader.tasks - Batch task definitions and data structures

Batch partitioning and result structures for parallel fetching.
"""

import math
from dataclasses import dataclass
from typing import Iterable, List


@dataclass
class BatchTask:
    """A contiguous slice of identifiers sent in one provider request"""
    batch_index: int
    ids: List[str]

    @property
    def size(self) -> int:
        return len(self.ids)


@dataclass
class BatchResult:
    """Result of a batch execution"""
    batch_index: int
    success: bool
    records: int = 0
    duration: float = 0.0
    error: str = ""


def unique_ids(ids: Iterable[str]) -> List[str]:
    """Drop duplicate ids, keeping the first occurrence"""
    seen = set()
    ordered = []
    for item in ids:
        if item in seen:
            continue
        seen.add(item)
        ordered.append(item)
    return ordered


def partition_ids(ids: List[str], batch_size: int) -> List[BatchTask]:
    """Split ids into ceil(len / batch_size) contiguous batches"""
    if batch_size < 1:
        raise ValueError(f"Invalid batch size: {batch_size}")

    count = math.ceil(len(ids) / batch_size)
    return [
        BatchTask(batch_index=index, ids=ids[index * batch_size:(index + 1) * batch_size])
        for index in range(count)
    ]
