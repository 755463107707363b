"""
sd2epg - Schedules Direct program guide assembler

Downloads lineups, schedules, programs, series descriptions and artwork from
Schedules Direct, with intelligent caching, and assembles them into an
in-memory program guide graph for export.
"""

__version__ = "2.0.0"
__license__ = "GPL-3.0"

from .config import ConfigManager
from .downloader import BatchFetcher, RateLimitedClient, SchedulesDirectApi, TmdbApi
from .models import GuideGraph, ProgramFlags
from .parser import ImageSelector, ReferenceResolver
from .pipeline import AssemblyPipeline, PipelineOptions, PipelineResult, ProgressTracker
from .utils import CacheAssetNotFound, CacheManager, TimeUtils

__all__ = [
    "ConfigManager",
    "BatchFetcher",
    "RateLimitedClient",
    "SchedulesDirectApi",
    "TmdbApi",
    "GuideGraph",
    "ProgramFlags",
    "ImageSelector",
    "ReferenceResolver",
    "AssemblyPipeline",
    "PipelineOptions",
    "PipelineResult",
    "ProgressTracker",
    "CacheAssetNotFound",
    "CacheManager",
    "TimeUtils",
]
