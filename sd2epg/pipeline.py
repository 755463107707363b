"""
sd2epg.pipeline - Guide assembly pipeline

Drives the acquisition stages in a fixed order, each one ending with a hard
barrier: stations, programs, series descriptions, series images, extended
metadata and movie posters. Every stage tries the asset cache first, fetches
the misses through the BatchFetcher and mutates the guide graph on the
owning thread only, after the fetch has joined.
"""

import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from .downloader import BatchFetcher, SchedulesDirectApi, TmdbApi
from .models import GuideGraph, Program, ProgramFlags, SeriesInfo
from .parser import ImageCandidate, ImageSelector, ProgramParser, ReferenceResolver, StationParser
from .utils import CacheAssetNotFound, CacheManager, TimeUtils


@dataclass
class PipelineOptions:
    """Run options, built from the configuration"""

    lineups: List[str] = field(default_factory=list)
    # None = number of stations in the guide
    expected_count: Optional[int] = None
    series_poster_art: bool = False
    extended_data: bool = True
    movie_posters: bool = False
    language: str = "en"
    max_parallel: int = SchedulesDirectApi.MAX_PARALLEL_DOWNLOADS
    today: Optional[date] = None


@dataclass
class PipelineResult:
    graph: GuideGraph
    warnings: List[str] = field(default_factory=list)
    stage_stats: "OrderedDict[str, Dict[str, Any]]" = field(default_factory=OrderedDict)
    failed_stages: List[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        """True when the guide was assembled from stations and programs"""
        if "stations" in self.failed_stages or "programs" in self.failed_stages:
            return False
        return bool(self.graph.programs)


class ProgressTracker:
    """Tracks (processed, total) per stage and forwards it to an optional sink"""

    def __init__(self, sink: Optional[Callable[[int, int, int], None]] = None):
        self.sink = sink
        self.stage_index = 0
        self.stage_name = ""
        self.processed = 0
        self.total = 0
        self.start_time = time.time()

    def start_stage(self, stage_index: int, stage_name: str):
        self.stage_index = stage_index
        self.stage_name = stage_name
        self.processed = 0
        self.total = 0
        self.start_time = time.time()

    def set_total(self, total: int):
        self.total = total
        self._report()

    def increment(self, count: int = 1):
        self.processed += count
        self._report()

    def _report(self):
        if self.sink:
            self.sink(self.stage_index, self.processed, self.total)

    def finish_stage(self) -> Dict[str, Any]:
        """Close the stage, logging a discrepancy when not every entity was processed"""
        stats = {
            "processed": self.processed,
            "total": self.total,
            "duration": time.time() - self.start_time,
        }
        if self.processed != self.total:
            logging.warning(
                "  Stage %s: processed %d of %d expected entities",
                self.stage_name,
                self.processed,
                self.total,
            )
        return stats


class AssemblyPipeline:
    """Builds the guide graph from cache and provider responses"""

    def __init__(
        self,
        api: SchedulesDirectApi,
        cache: CacheManager,
        options: Optional[PipelineOptions] = None,
        tmdb: Optional[TmdbApi] = None,
        fetcher: Optional[BatchFetcher] = None,
        progress_sink: Optional[Callable[[int, int, int], None]] = None,
    ):
        self.api = api
        self.cache = cache
        self.options = options or PipelineOptions()
        self.tmdb = tmdb
        self.fetcher = fetcher or BatchFetcher(self.options.max_parallel)
        self.progress = ProgressTracker(progress_sink)

        self.graph = GuideGraph()
        self.resolver = ReferenceResolver(self.graph)
        self.selector = ImageSelector(api.image_base_url)
        self.station_parser = StationParser(self.graph)
        self.program_parser = ProgramParser(self.graph, self.resolver)
        self.warnings: List[str] = []

    @property
    def stages(self):
        return [
            ("stations", self.build_stations),
            ("programs", self.build_programs),
            ("series descriptions", self.build_series_descriptions),
            ("series images", self.build_series_images),
            ("extended metadata", self.build_extended_metadata),
            ("movie posters", self.build_movie_posters),
        ]

    def run(self) -> PipelineResult:
        """
        Run every stage in order

        Errors inside a stage never abort the run: the result holds the best
        effort graph and the warnings raised along the way.
        """
        result = PipelineResult(self.graph, self.warnings)

        for index, (name, stage) in enumerate(self.stages, 1):
            logging.info("Stage %d: %s", index, name)
            self.progress.start_stage(index, name)
            try:
                stage()
            except Exception as e:
                logging.exception("Stage %s failed: %s", name, str(e))
                self.warnings.append(f"Stage {name} failed: {e}")
                result.failed_stages.append(name)
            result.stage_stats[name] = self.progress.finish_stage()

        stats = self.graph.get_statistics()
        logging.info("Guide assembled:")
        for key, value in stats.items():
            logging.info("  %s: %d", key, value)
        if self.resolver.missing_references:
            logging.info("  unresolved references: %d", self.resolver.missing_references)

        return result

    # Helpers

    @property
    def expected_count(self) -> int:
        if self.options.expected_count is not None:
            return self.options.expected_count
        return len(self.graph.stations)

    def _refresh_due(self, numeric_id: int) -> bool:
        return TimeUtils.is_refresh_due(numeric_id, self.expected_count, self.options.today)

    @staticmethod
    def _series_numeric_id(series: SeriesInfo) -> int:
        # sports groups have no numeric id and are never refreshed
        return int(series.series_id) if series.series_id.isdigit() else 0

    def _cached_json(self, asset_id: str) -> Optional[Dict[str, Any]]:
        """Decoded cache entry, None when missing or unparsable"""
        try:
            text = self.cache.get_asset(asset_id)
        except CacheAssetNotFound:
            return None
        if not text:
            return None

        try:
            data = json.loads(text)
        except ValueError:
            logging.warning("  Invalid cached entry %s - fetching again", asset_id)
            return None
        return data if isinstance(data, dict) else None

    def _fetch(self, ids: List[str], batch_size: int, fetch_fn) -> List[Any]:
        return self.fetcher.fetch_all(ids, batch_size, self.options.max_parallel, fetch_fn)

    # Stage 1

    def build_stations(self):
        lineups = self.api.get_user_lineups()
        if lineups is None:
            self.warnings.append("Unable to retrieve the account lineups")
            return

        selected = [
            info
            for info in lineups
            if not info.get("isDeleted")
            and (not self.options.lineups or info.get("lineup") in self.options.lineups)
        ]
        self.progress.set_total(len(selected))

        for info in selected:
            lineup_map = self.api.get_lineup_map(info.get("lineup", ""))
            if lineup_map is None:
                logging.warning("  Failed to retrieve lineup %s", info.get("lineup"))
                continue
            self.station_parser.parse_lineup(info, lineup_map)
            self.progress.increment()

        if not self.graph.stations:
            self.warnings.append("No stations found in the configured lineups")

    # Stage 2

    def build_programs(self):
        schedules = self._fetch(
            list(self.graph.stations), SchedulesDirectApi.MAX_QUERIES, self.api.get_schedules
        )

        program_md5: "OrderedDict[str, Optional[str]]" = OrderedDict()
        for schedule in schedules:
            if not isinstance(schedule, dict) or schedule.get("code"):
                continue
            self.station_parser.parse_schedule(schedule)
            for airing in schedule.get("programs") or []:
                if airing.get("programID"):
                    program_md5.setdefault(airing["programID"], airing.get("md5"))

        self.progress.set_total(len(program_md5))

        records: Dict[str, Dict[str, Any]] = {}
        queued = []
        for program_id, md5 in program_md5.items():
            record = self._cached_json(md5) if md5 else None
            if record is not None and record.get("programID") == program_id:
                records[program_id] = record
            else:
                queued.append(program_id)

        if queued:
            logging.info("  %d programs cached, %d to download", len(records), len(queued))
            for record in self._fetch(queued, SchedulesDirectApi.MAX_QUERIES, self.api.get_programs):
                program_id = record.get("programID") if isinstance(record, dict) else None
                if program_id not in program_md5 or record.get("code"):
                    logging.debug("  Unusable program record: %s", program_id)
                    continue
                md5 = record.get("md5") or program_md5[program_id]
                if md5:
                    self.cache.add_asset(md5, json.dumps(record))
                records[program_id] = record

        # Parse in schedule order so node ids do not depend on cache state
        for program_id in program_md5:
            record = records.get(program_id)
            if record is not None and self.program_parser.parse_program(record):
                self.progress.increment()

        if not self.graph.programs:
            self.warnings.append("No programs found for the configured stations")

    # Stage 3

    def build_series_descriptions(self):
        series_list = [s for s in self.graph.series_infos.values() if not s.is_sports]
        self.progress.set_total(len(series_list))

        queued = []
        for series in series_list:
            entry = self._cached_json(ReferenceResolver.cache_key(series))
            if not self._is_description(entry):
                queued.append(f"EP{series.series_id}0000")
                continue
            self._apply_description(series, entry)
            self.progress.increment()

        if not queued:
            return

        def fetch_descriptions(ids):
            response = self.api.get_generic_descriptions(ids)
            return list(response.items()) if response is not None else None

        for record_id, entry in self._fetch(queued, SchedulesDirectApi.MAX_IMG_QUERIES, fetch_descriptions):
            series = self.resolver.resolve(record_id)
            if series is None or not isinstance(entry, dict):
                continue
            # Stored even on error codes so the series is not requested again
            self.cache.add_asset(ReferenceResolver.cache_key(series), json.dumps(entry))
            self._apply_description(series, entry)
            self.progress.increment()

    @staticmethod
    def _is_description(entry: Optional[Dict[str, Any]]) -> bool:
        """A cached entry holding a provider description answer, not only merged fields"""
        if entry is None:
            return False
        return any(key in entry for key in ("code", "description100", "description1000"))

    @staticmethod
    def _apply_description(series: SeriesInfo, entry: Dict[str, Any]):
        if entry.get("code", 0) != 0:
            return
        series.short_description = entry.get("description100") or series.short_description
        series.description = entry.get("description1000") or series.description
        if entry.get("startAirdate"):
            series.start_airdate = entry["startAirdate"]

    # Stage 4

    def build_series_images(self):
        series_list = list(self.graph.series_infos.values())
        self.progress.set_total(len(series_list))

        queued: List[SeriesInfo] = []
        refreshing = 0
        for series in series_list:
            cached = self.cache.get_asset_images(ReferenceResolver.cache_key(series))
            if cached is not None and self._refresh_due(self._series_numeric_id(series)):
                refreshing += 1
            elif cached == "":
                self.progress.increment()
                continue
            elif cached is not None:
                images = ImageSelector.deserialize(cached)
                if images is not None:
                    self._apply_series_images(series, images)
                    self.progress.increment()
                    continue
            queued.append(series)

        if refreshing:
            logging.info("  Refreshing %d series image links", refreshing)
        if not queued:
            return

        request_ids = []
        for series in queued:
            request_ids.extend(f"{base_id}0000" for base_id in self.resolver.request_ids(series))

        responded = set()
        candidates: Dict[str, List[Any]] = {}
        for record in self._fetch(request_ids, SchedulesDirectApi.MAX_IMG_QUERIES, self.api.get_artwork):
            series = self.resolver.resolve(record.get("programID", "")) if isinstance(record, dict) else None
            if series is None:
                continue
            responded.add(series.series_id)
            data = record.get("data")
            if isinstance(data, list):
                candidates.setdefault(series.series_id, []).extend(data)

        for series in queued:
            if series.series_id not in responded:
                continue
            cache_id = ReferenceResolver.cache_key(series)
            images = self.selector.select_images(candidates.get(series.series_id, []))
            if images:
                self.cache.update_asset_images(cache_id, ImageSelector.serialize(images))
                self._apply_series_images(series, images)
            else:
                self.cache.update_asset_images(cache_id, "")
            self.progress.increment()

    def _apply_series_images(self, series: SeriesInfo, images: List[ImageCandidate]):
        series.series_images = images
        image = ImageSelector.select_guide_image(images, self.options.series_poster_art)
        if image is not None:
            series.guide_image = self.graph.get_guide_image(image.uri).id

    # Stage 5

    def build_extended_metadata(self):
        if not self.options.extended_data:
            logging.info("  Extended series data disabled")
            return

        series_list = [
            s for s in self.graph.series_infos.values() if not s.is_sports and s.series_id.isdigit()
        ]
        self.progress.set_total(len(series_list))

        queued = []
        for series in series_list:
            entry = self._cached_json(ReferenceResolver.cache_key(series))
            if series.start_airdate or (entry is not None and "startAirdate" in entry):
                self.progress.increment()
            else:
                queued.append(f"SH{series.series_id}0000")

        if not queued:
            return

        for record in self._fetch(queued, SchedulesDirectApi.MAX_QUERIES, self.api.get_programs):
            program_id = record.get("programID") if isinstance(record, dict) else None
            series = self.resolver.resolve(program_id) if program_id else None
            if series is None:
                continue

            airdate = record.get("originalAirDate") or ""
            cache_id = ReferenceResolver.cache_key(series)
            entry = self._cached_json(cache_id)
            # Only merged into an existing description entry
            if self._is_description(entry):
                entry["startAirdate"] = airdate
                self.cache.update_asset_json_entry(cache_id, json.dumps(entry))
            if airdate:
                series.start_airdate = airdate
            self.progress.increment()

    # Stage 6

    def build_movie_posters(self):
        if not self.options.movie_posters or self.tmdb is None:
            logging.info("  Movie poster lookups disabled")
            return
        if not self.tmdb.image_base_url and not self.tmdb.initialize():
            self.warnings.append("TMDb configuration unavailable - movie posters skipped")
            return

        movies = [
            p for p in self.graph.programs.values() if p.has(ProgramFlags.MOVIE) and p.guide_image is None
        ]
        self.progress.set_total(len(movies))

        queued = []
        for program in movies:
            cached = self.cache.get_asset_images(program.program_id)
            if cached is None or self._refresh_due(self._program_numeric_id(program)):
                queued.append(program.program_id)
                continue
            if cached:
                images = ImageSelector.deserialize(cached)
                if images is None:
                    queued.append(program.program_id)
                    continue
                self._apply_poster(program, images)
            self.progress.increment()

        if not queued:
            return

        for program_id, records in self._fetch(queued, 1, self._search_poster):
            program = self.graph.find_program(program_id)
            if program is None:
                continue
            images = [image for image in map(ImageCandidate.from_dict, records) if image is not None]
            self.cache.update_asset_images(program_id, ImageSelector.serialize(images) if images else "")
            self._apply_poster(program, images)
            self.progress.increment()

    @staticmethod
    def _program_numeric_id(program: Program) -> int:
        body = program.program_id[2:10]
        return int(body) if body.isdigit() else 0

    def _search_poster(self, ids: List[str]):
        """Runs on a worker thread, only reads the graph"""
        results = []
        for program_id in ids:
            program = self.graph.find_program(program_id)
            if program is None:
                continue
            movies = self.tmdb.search_catalog(program.title, program.year, self.options.language)
            if movies is None:
                continue
            match = next((m for m in movies if program.year and m.year == program.year), None)
            if match is None and movies:
                match = movies[0]
            results.append((program_id, self.tmdb.poster_images(match) if match else []))
        return results

    def _apply_poster(self, program: Program, images: List[ImageCandidate]):
        if images:
            program.guide_image = self.graph.get_guide_image(images[0].uri).id
