from datetime import date
from unittest.mock import MagicMock

from sd2epg.downloader import BatchFetcher
from sd2epg.parser import ImageCandidate, ImageSelector
from sd2epg.pipeline import AssemblyPipeline, PipelineOptions, ProgressTracker
from sd2epg.utils import CacheManager

BASE = "https://json.schedulesdirect.org/20141201/"


def banner(uri, category="Banner", aspect="4x3"):
    return {"uri": uri, "aspect": aspect, "size": "Md", "category": category, "tier": "Series"}


def make_pipeline(api, cache, **options):
    options.setdefault("today", date(2025, 6, 20))
    return AssemblyPipeline(api, cache, PipelineOptions(**options), fetcher=BatchFetcher(2))


def test_series_images_only_fetch_uncached_series(api, cache):
    for key in ("00001001", "00001002"):
        cached = [ImageCandidate(uri=f"{BASE}image/{key}.jpg", aspect="4x3", size="Md", category="Banner-L1")]
        cache.update_asset_images(f"SH{key}0000", ImageSelector.serialize(cached))

    api.get_artwork.return_value = [
        {"programID": "SH000010030000", "data": [banner("Logo.jpg", "Logo"), banner("Main.jpg")]}
    ]

    pipeline = make_pipeline(api, cache, expected_count=0)
    for key in ("00001001", "00001002", "00001003"):
        pipeline.graph.get_series_info(key)
    pipeline.build_series_images()

    api.get_artwork.assert_called_once_with(["SH000010030000"])
    series = list(pipeline.graph.series_infos.values())
    assert len(series) == 3
    assert all(s.guide_image for s in series)

    fetched = pipeline.graph.find_series_info("00001003")
    assert pipeline.graph.guide_images[BASE + "image/main.jpg"].id == fetched.guide_image
    assert ImageSelector.deserialize(cache.get_asset_images("SH000010030000"))[0].category == "Banner"
    assert (pipeline.progress.processed, pipeline.progress.total) == (3, 3)


def test_series_without_images_get_sentinel(api, cache):
    api.get_artwork.return_value = [{"programID": "SH000010030000", "data": {"errorCode": 5000}}]

    pipeline = make_pipeline(api, cache, expected_count=0)
    pipeline.graph.get_series_info("00001003")
    pipeline.build_series_images()
    assert cache.get_asset_images("SH000010030000") == ""

    api.reset_mock()
    again = make_pipeline(api, cache, expected_count=0)
    again.graph.get_series_info("00001003")
    again.build_series_images()
    api.get_artwork.assert_not_called()
    assert again.graph.find_series_info("00001003").guide_image is None


def test_refresh_due_refetches_cached_images(api, cache):
    cache.update_asset_images("SH000010030000", "")
    api.get_artwork.return_value = [{"programID": "SH000010030000", "data": [banner("new.jpg")]}]

    # 1003 * 1 % 30 == 13, due on day 12
    pipeline = make_pipeline(api, cache, expected_count=1, today=date(2025, 6, 12))
    pipeline.graph.get_series_info("00001003")
    pipeline.build_series_images()

    api.get_artwork.assert_called_once()
    assert pipeline.graph.find_series_info("00001003").guide_image == 1


def test_failed_fetch_leaves_series_unresolved(api, cache):
    api.get_artwork.return_value = None

    pipeline = make_pipeline(api, cache, expected_count=0)
    pipeline.graph.get_series_info("00001003")
    pipeline.build_series_images()

    assert cache.get_asset_images("SH000010030000") is None
    assert (pipeline.progress.processed, pipeline.progress.total) == (0, 1)


def test_sports_images_resolved_through_index(api, cache):
    api.get_artwork.return_value = [
        {"programID": "SP000111220000", "data": [banner("logo.jpg", "Logo")]},
        {"programID": "SP000111330000", "data": [banner("banner.jpg", "Banner-L2")]},
    ]

    pipeline = make_pipeline(api, cache)
    series = pipeline.resolver.register_program("SP000111220000", "NHL Hockey")
    pipeline.resolver.register_program("SP000111330000", "NHL Hockey")
    pipeline.build_series_images()

    api.get_artwork.assert_called_once_with(["SP000111220000", "SP000111330000"])
    assert series.series_images[0].uri == BASE + "image/banner.jpg"
    assert cache.get_asset_images(series.series_id)


def test_corrupt_cached_description_is_refetched(api, cache):
    cache.add_asset("SH000010010000", "{not json")
    api.get_generic_descriptions.return_value = {
        "EP000010010000": {"code": 0, "description100": "Short", "description1000": "Long"}
    }

    pipeline = make_pipeline(api, cache)
    pipeline.graph.get_series_info("00001001")
    pipeline.build_series_descriptions()

    api.get_generic_descriptions.assert_called_once_with(["EP000010010000"])
    series = pipeline.graph.find_series_info("00001001")
    assert (series.short_description, series.description) == ("Short", "Long")
    assert "Long" in cache.get_asset("SH000010010000")


PROGRAMS = {
    "EP000010010001": {
        "programID": "EP000010010001",
        "md5": "md5-episode",
        "titles": [{"title120": "Show One"}],
        "entityType": "Episode",
        "showType": "Series",
    },
    "MV000020020000": {
        "programID": "MV000020020000",
        "md5": "md5-movie",
        "titles": [{"title120": "A Movie"}],
        "entityType": "Movie",
        "showType": "Feature Film",
        "movie": {"year": "1999"},
    },
    "SH000010010000": {"programID": "SH000010010000", "originalAirDate": "2001-09-01"},
}


def make_provider():
    api = MagicMock()
    api.image_base_url = BASE
    api.get_user_lineups.return_value = [
        {"lineup": "USA-TEST-X", "name": "Test", "location": "City"},
        {"lineup": "USA-OLD-X", "isDeleted": True},
    ]
    api.get_lineup_map.return_value = {
        "map": [{"stationID": "10001", "channel": "2"}],
        "stations": [
            {
                "stationID": "10001",
                "callsign": "WTST",
                "name": "Test TV",
                "affiliate": "ABC",
                "stationLogo": [{"URL": "https://logos.example.org/wtst.png"}],
            }
        ],
    }
    api.get_schedules.return_value = [
        {
            "stationID": "10001",
            "programs": [
                {"programID": "EP000010010001", "airDateTime": "2025-06-20T00:00:00Z", "duration": 1800, "md5": "md5-episode"},
                {"programID": "MV000020020000", "airDateTime": "2025-06-20T00:30:00Z", "duration": 7200, "md5": "md5-movie"},
            ],
        }
    ]
    api.get_programs.side_effect = lambda ids: [PROGRAMS[i] for i in ids if i in PROGRAMS]
    api.get_generic_descriptions.side_effect = lambda ids: {
        i: {"code": 0, "description100": "Short", "description1000": "Long"} for i in ids
    }
    api.get_artwork.side_effect = lambda ids: [{"programID": i, "data": [banner("show.jpg")]} for i in ids]
    return api


def test_full_run_builds_graph(tmp_path):
    api = make_provider()
    sink = MagicMock()
    pipeline = AssemblyPipeline(
        api,
        CacheManager(tmp_path),
        PipelineOptions(today=date(2025, 6, 20)),
        progress_sink=sink,
    )

    result = pipeline.run()
    graph = result.graph

    assert result.warnings == []
    assert all(s["processed"] == s["total"] for s in result.stage_stats.values())
    assert list(result.stage_stats) == [
        "stations",
        "programs",
        "series descriptions",
        "series images",
        "extended metadata",
        "movie posters",
    ]

    station = graph.stations["10001"]
    assert station.channels == ["2"]
    assert [entry.program_id for entry in station.schedule] == ["EP000010010001", "MV000020020000"]
    assert list(graph.lineups) == ["USA-TEST-X"]

    series = graph.find_series_info("00001001")
    assert series.title == "Show One"
    assert series.description == "Long"
    assert series.start_airdate == "2001-09-01"
    assert series.guide_image == 1
    assert graph.programs["EP000010010001"].series == "00001001"
    sink.assert_any_call(1, 1, 1)


def test_warm_cache_run_is_identical(tmp_path):
    api = make_provider()
    first_cache = CacheManager(tmp_path)
    first = AssemblyPipeline(api, first_cache, PipelineOptions(today=date(2025, 6, 20))).run()
    first_cache.write_cache()

    api.get_programs.reset_mock()
    api.get_generic_descriptions.reset_mock()
    api.get_artwork.reset_mock()

    second = AssemblyPipeline(api, CacheManager(tmp_path), PipelineOptions(today=date(2025, 6, 20))).run()

    assert second.graph.to_dict() == first.graph.to_dict()
    api.get_programs.assert_not_called()
    api.get_generic_descriptions.assert_not_called()
    api.get_artwork.assert_not_called()


def test_empty_guide_reports_warnings(api, cache):
    api.get_user_lineups.return_value = []
    api.get_schedules.return_value = []

    result = make_pipeline(api, cache).run()

    assert "No stations found in the configured lineups" in result.warnings
    assert "No programs found for the configured stations" in result.warnings


def test_stage_error_does_not_abort_run(api, cache):
    api.get_user_lineups.side_effect = RuntimeError("boom")

    result = make_pipeline(api, cache).run()

    assert any("stations" in warning for warning in result.warnings)
    assert len(result.stage_stats) == 6


def test_movie_posters_from_tmdb(api, cache):
    tmdb = MagicMock()
    tmdb.image_base_url = "https://image.tmdb.org/t/p/"
    movie = MagicMock(year=1999)
    tmdb.search_catalog.return_value = [movie]
    tmdb.poster_images.return_value = [
        {"uri": "https://image.tmdb.org/t/p/w342/movie.jpg", "aspect": "2x3", "size": "Md", "category": "Poster Art"}
    ]

    pipeline = AssemblyPipeline(
        api, cache, PipelineOptions(movie_posters=True, today=date(2025, 6, 20)), tmdb=tmdb
    )
    pipeline.program_parser.parse_program(PROGRAMS["MV000020020000"])
    pipeline.build_movie_posters()

    tmdb.search_catalog.assert_called_once_with("A Movie", 1999, "en")
    program = pipeline.graph.programs["MV000020020000"]
    assert pipeline.graph.guide_images["https://image.tmdb.org/t/p/w342/movie.jpg"].id == program.guide_image
    assert cache.get_asset_images("MV000020020000")


def test_progress_tracker_reports_to_sink():
    sink = MagicMock()
    tracker = ProgressTracker(sink)
    tracker.start_stage(4, "series images")
    tracker.set_total(2)
    tracker.increment()
    stats = tracker.finish_stage()

    assert sink.call_args_list[-1].args == (4, 1, 2)
    assert (stats["processed"], stats["total"]) == (1, 2)


def test_airdate_without_description_does_not_block_later_fetch(api, cache):
    api.get_generic_descriptions.return_value = None
    api.get_programs.return_value = [PROGRAMS["SH000010010000"]]

    first = make_pipeline(api, cache)
    first.graph.get_series_info("00001001")
    first.build_series_descriptions()
    first.build_extended_metadata()

    assert first.graph.find_series_info("00001001").start_airdate == "2001-09-01"
    assert not cache.contains_key("SH000010010000")

    api.reset_mock()
    api.get_generic_descriptions.return_value = {
        "EP000010010000": {"code": 0, "description100": "Short", "description1000": "Long"}
    }
    second = make_pipeline(api, cache)
    second.graph.get_series_info("00001001")
    second.build_series_descriptions()

    api.get_generic_descriptions.assert_called_once_with(["EP000010010000"])
    assert second.graph.find_series_info("00001001").description == "Long"


def test_airdate_only_entry_is_not_a_cached_description(api, cache):
    cache.add_asset("SH000010010000", '{"startAirdate": "2001-09-01"}')
    api.get_generic_descriptions.return_value = {"EP000010010000": {"code": 0, "description1000": "Long"}}

    pipeline = make_pipeline(api, cache)
    pipeline.graph.get_series_info("00001001")
    pipeline.build_series_descriptions()

    api.get_generic_descriptions.assert_called_once()
    assert pipeline.graph.find_series_info("00001001").description == "Long"


def test_provider_outage_leaves_result_incomplete(api, cache):
    api.get_user_lineups.return_value = None
    api.get_schedules.return_value = None

    result = make_pipeline(api, cache).run()

    assert not result.is_complete


def test_failed_programs_stage_leaves_result_incomplete(tmp_path):
    api = make_provider()
    api.get_schedules.side_effect = RuntimeError("boom")

    result = AssemblyPipeline(api, CacheManager(tmp_path), PipelineOptions(today=date(2025, 6, 20))).run()

    assert result.failed_stages == ["programs"]
    assert not result.is_complete


def test_full_run_is_complete(tmp_path):
    result = AssemblyPipeline(make_provider(), CacheManager(tmp_path), PipelineOptions(today=date(2025, 6, 20))).run()
    assert result.is_complete
    assert result.failed_stages == []
