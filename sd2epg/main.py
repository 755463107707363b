#!/usr/bin/env python3
"""
sd2epg - Schedules Direct program guide assembler

Loads the configuration, logs in, runs the assembly pipeline and persists the
asset cache. The assembled graph can be written as JSON for the exporter.
"""

import json
import logging
import sys
import time
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from .args import ArgumentParser
from .config import ConfigManager
from .downloader import BatchFetcher, SchedulesDirectApi, TmdbApi
from .pipeline import AssemblyPipeline, PipelineOptions
from .utils import CacheManager

from . import __version__


def setup_logging(logging_config: dict, log_file: Path, retention_days: int):
    """Setup logging with a daily rotated log file"""
    log_file.parent.mkdir(parents=True, exist_ok=True)

    if logging_config["level"] == "warning":
        file_level = logging.WARNING
    elif logging_config["level"] == "debug":
        file_level = logging.DEBUG
    else:  # default
        file_level = logging.INFO

    file_handler = TimedRotatingFileHandler(
        log_file, when="midnight", backupCount=retention_days, encoding="utf-8"
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)-8s %(message)s", datefmt="%Y/%m/%d %H:%M:%S")
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(file_level)
    root_logger.handlers.clear()
    root_logger.addHandler(file_handler)

    # Console logging only if --console is specified (and not --quiet)
    if logging_config["console"] and not logging_config["quiet"]:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(file_level)
        console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        root_logger.addHandler(console_handler)

    return file_handler


def build_options(config_manager: ConfigManager) -> PipelineOptions:
    config = config_manager.settings
    return PipelineOptions(
        lineups=config_manager.get_lineups(),
        expected_count=config_manager.get_expected_count(),
        series_poster_art=config["seriesposterart"],
        extended_data=config["extendeddata"],
        movie_posters=config["tmdb"],
        language=config["language"],
        max_parallel=config["workers"],
    )


def write_output(result, output_file: Path):
    """Dump the guide graph for the external serializer"""
    data = result.graph.to_dict()
    data["warnings"] = list(result.warnings)
    with open(output_file, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
    logging.info("Guide graph written to: %s", output_file)


def main(argv=None):
    """Main application entry point"""
    start_time = time.time()

    arg_parser = ArgumentParser()
    args = arg_parser.parse_args(argv)

    defaults = arg_parser.get_system_defaults(args.basedir)
    arg_parser.create_directories(defaults)

    config_file = args.config_file or defaults["config_file"]
    cache_dir = args.cachedir or defaults["cache_dir"]

    config_manager = ConfigManager(config_file)
    try:
        config = config_manager.load_config(workers=args.workers)
    except Exception as e:
        print(f"Error: unusable configuration {config_file}: {e}", file=sys.stderr)
        return 1

    logging_config = arg_parser.get_logging_config(args)
    setup_logging(logging_config, defaults["log_file"], config["relogs"])

    logging.info("=" * 60)
    logging.info("sd2epg session started - Version %s", __version__)
    if logging_config["level"] == "debug":
        logging.info("Debug logging enabled - all debug information will be logged")
    config_manager.log_config_summary()
    logging.info("Caching directory: %s", cache_dir)

    api = None
    tmdb = None
    try:
        cache_manager = CacheManager(cache_dir)
        api = SchedulesDirectApi.create(pool_size=config["workers"])

        if not api.login(config["username"], SchedulesDirectApi.hash_password(config["password"])):
            logging.info("sd2epg session ended with error")
            return 1

        if config["tmdb"]:
            tmdb = TmdbApi.create(
                config["tmdbkey"], include_adult=config["includeadult"], pool_size=config["workers"]
            )

        fetcher = BatchFetcher(config["workers"])
        pipeline = AssemblyPipeline(api, cache_manager, build_options(config_manager), tmdb, fetcher)
        result = pipeline.run()

        for warning in result.warnings:
            logging.warning("%s", warning)

        if config["cacheclean"] and result.is_complete:
            cache_manager.clean_cache()
        elif config["cacheclean"]:
            logging.warning("Guide incomplete - cache cleanup skipped")
        cache_manager.write_cache()

        if args.output:
            write_output(result, args.output)

        logging.info("=" * 60)
        logging.info("SUMMARY:")
        logging.info("  Total execution time: %.2f seconds", time.time() - start_time)
        for name, stats in result.stage_stats.items():
            logging.info(
                "  %s: %d/%d in %.2f seconds",
                name,
                stats["processed"],
                stats["total"],
                stats["duration"],
            )
        client_stats = api.client.get_statistics()
        logging.info("  Requests: %d", client_stats["total_requests"])
        logging.info("  Rate limited: %d", client_stats["rate_limited"])
        logging.info("  Failed: %d", client_stats["failures"])
        logging.info("  Batch success rate: %.1f%%", fetcher.get_statistics()["success_rate"])

        logging.info("sd2epg session ended successfully")
        logging.info("=" * 60)
        return 0

    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        return 1
    except Exception as e:
        logging.exception("Critical error: %s", str(e))
        logging.info("sd2epg session ended with error")
        logging.info("=" * 60)
        return 1
    finally:
        if api:
            api.client.close()
        if tmdb:
            tmdb.client.close()


if __name__ == "__main__":
    sys.exit(main())
