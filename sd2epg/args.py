"""
Command line argument parsing for sd2epg

Handles the run options, log level selection and default directories.
"""

import argparse
import sys
from pathlib import Path
from typing import Dict, Optional


class ArgumentParser:
    """Command line argument parser for sd2epg"""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self):
        """Create the argument parser with all options"""
        parser = argparse.ArgumentParser(
            prog="sd2epg",
            description="Schedules Direct program guide assembler",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog=self._get_epilog_text(),
        )

        parser.add_argument("--version", "-v", action="store_true", help="Show version and exit")

        # Log level selection
        level_group = parser.add_mutually_exclusive_group()
        level_group.add_argument(
            "--warning", "-w", action="store_true", help="Only warnings and errors to file"
        )
        level_group.add_argument(
            "--debug", action="store_true", help="All debug information to file (very verbose)"
        )

        # Console output control
        console_group = parser.add_mutually_exclusive_group()
        console_group.add_argument(
            "--console",
            action="store_true",
            help="Display active log level to console (can combine with --warning/--debug)",
        )
        console_group.add_argument(
            "--quiet", "-q", action="store_true", help="No console output, logs to file only"
        )

        parser.add_argument(
            "--output", "-o", type=Path, help="Write the assembled guide graph as JSON to this file"
        )
        parser.add_argument(
            "--workers", type=int, help="Maximum parallel downloads (1-10, default: 4)"
        )

        # Paths
        parser.add_argument("--config-file", type=Path, help="Configuration file path")
        parser.add_argument("--cachedir", type=Path, help="Cache directory")
        parser.add_argument(
            "--basedir", type=Path, help="Base directory for config, cache, and logs"
        )

        return parser

    def _get_epilog_text(self):
        """Get the epilog help text"""
        return """
Examples:
  sd2epg
  sd2epg --output guide.json --console
  sd2epg --workers 2 --debug

Configuration:
  Default config: ~/sd2epg/conf/sd2epg.xml
  Default cache:  ~/sd2epg/cache/
  Default logs:   ~/sd2epg/log/

Logging Levels:
  (default)       Info, warnings and errors to file only
  --warning       Only warnings and errors to file
  --debug         All debug information to file only
  --console       Display active log level to console (can combine with --warning/--debug)
  --quiet         No console output, logs to file only
        """

    def parse_args(self, args=None):
        """Parse command line arguments with validation"""
        args = self.parser.parse_args(args)

        if args.version:
            from . import __version__

            print(__version__)
            sys.exit(0)

        if args.workers is not None and not 1 <= args.workers <= 10:
            self.parser.error(f"Workers must be between 1 and 10, got {args.workers}")

        return args

    def get_logging_config(self, args) -> Dict[str, object]:
        """Determine logging configuration from arguments"""
        config = {
            "level": "default",
            "console": False,
            "quiet": False,
        }

        if args.debug:
            config["level"] = "debug"
        elif args.warning:
            config["level"] = "warning"

        if args.console:
            config["console"] = True
        elif args.quiet:
            config["quiet"] = True

        return config

    @staticmethod
    def get_system_defaults(base_dir: Optional[Path] = None) -> Dict[str, Path]:
        """Default directories and files, under ~/sd2epg unless a base directory is given"""
        base_dir = Path(base_dir) if base_dir else Path.home() / "sd2epg"
        return {
            "base_dir": base_dir,
            "cache_dir": base_dir / "cache",
            "conf_dir": base_dir / "conf",
            "log_dir": base_dir / "log",
            "config_file": base_dir / "conf" / "sd2epg.xml",
            "log_file": base_dir / "log" / "sd2epg.log",
        }

    @staticmethod
    def create_directories(defaults: Dict[str, Path]):
        """Create required directories with proper 755 permissions"""
        for key in ["cache_dir", "conf_dir", "log_dir"]:
            directory = defaults[key]
            try:
                directory.mkdir(parents=True, exist_ok=True, mode=0o755)
            except OSError:
                directory.mkdir(parents=True, exist_ok=True)
