"""
sd2epg.downloader - Download management module

Handles all HTTP operations for sd2epg: rate limited requests, bounded
parallel batch fetching, and the guide and movie metadata provider APIs.
"""

from .base import RateLimitedClient
from .batch import BatchFetcher, ResponseCollector
from .schedules_direct import SchedulesDirectApi
from .tasks import BatchResult, BatchTask, partition_ids
from .tmdb import TmdbApi, TmdbMovie

__all__ = [
    "RateLimitedClient",
    "BatchFetcher",
    "ResponseCollector",
    "SchedulesDirectApi",
    "BatchResult",
    "BatchTask",
    "partition_ids",
    "TmdbApi",
    "TmdbMovie",
]
