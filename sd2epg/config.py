"""
sd2epg.config - Configuration management

Handles XML configuration file parsing, default creation, type conversion
and validation of the settings driving a guide assembly run.
"""

import logging
import os
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, Dict, List, Optional


class ConfigManager:
    """Manages sd2epg configuration file"""

    DEFAULT_CONFIG = """<?xml version="1.0" encoding="utf-8"?>
<settings version="1">
  <!-- Schedules Direct account -->
  <setting id="username"></setting>
  <setting id="password"></setting>

  <!-- Guide content -->
  <setting id="lineups"></setting>
  <setting id="expectedcount">0</setting>
  <setting id="seriesposterart">false</setting>
  <setting id="extendeddata">true</setting>

  <!-- Movie posters from TMDb -->
  <setting id="tmdb">false</setting>
  <setting id="tmdbkey"></setting>
  <setting id="includeadult">false</setting>
  <setting id="language">en</setting>

  <!-- Downloads, cache and logs -->
  <setting id="workers">4</setting>
  <setting id="cacheclean">true</setting>
  <setting id="relogs">30</setting>
</settings>"""

    # Valid settings and their types
    VALID_SETTINGS = {
        "username": str,
        "password": str,
        "lineups": str,
        "expectedcount": int,
        "seriesposterart": bool,
        "extendeddata": bool,
        "tmdb": bool,
        "tmdbkey": str,
        "includeadult": bool,
        "language": str,
        "workers": int,
        "cacheclean": bool,
        "relogs": int,
    }

    DEFAULTS = {
        "username": "",
        "password": "",
        "lineups": "",
        "expectedcount": 0,
        "seriesposterart": False,
        "extendeddata": True,
        "tmdb": False,
        "tmdbkey": "",
        "includeadult": False,
        "language": "en",
        "workers": 4,
        "cacheclean": True,
        "relogs": 30,
    }

    # Settings order for log output
    SETTINGS_ORDER = [
        "username",
        "password",
        "lineups",
        "expectedcount",
        "seriesposterart",
        "extendeddata",
        "tmdb",
        "tmdbkey",
        "includeadult",
        "language",
        "workers",
        "cacheclean",
        "relogs",
    ]

    MAX_WORKERS = 10

    def __init__(self, config_file: Path):
        self.config_file = Path(config_file)
        self.settings: Dict[str, Any] = {}
        self.version: str = "1"
        self.config_changes: Dict[str, str] = {}

    def load_config(self, workers: Optional[int] = None) -> Dict[str, Any]:
        """
        Load and validate configuration file

        Args:
            workers: Worker count from the command line, overrides the file for this run

        Returns:
            Dict: Typed settings

        Raises:
            ValueError: Required account settings are missing
            ET.ParseError: Configuration file is not valid XML
        """
        if not self.config_file.exists():
            self._create_default_config()

        self.settings = dict(self.DEFAULTS)
        self._parse_config_file()

        self.config_changes = {}
        env_workers = os.environ.get("SD2EPG_MAX_WORKERS")
        if env_workers:
            self._override("workers", env_workers, "SD2EPG_MAX_WORKERS")
        if workers is not None:
            self._override("workers", workers, "command line")

        self._validate_config()
        return self.settings

    def _create_default_config(self):
        """Create default configuration file with proper permissions"""
        logging.info("Creating default configuration: %s", self.config_file)

        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True, mode=0o755)
        except OSError:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(self.config_file, "w", encoding="utf-8") as f:
            f.write(self.DEFAULT_CONFIG)

    def _parse_config_file(self):
        """Parse XML configuration file"""
        try:
            tree = ET.parse(self.config_file)
        except ET.ParseError as e:
            logging.error("Cannot parse configuration file %s: %s", self.config_file, e)
            raise

        root = tree.getroot()
        logging.info("Reading configuration from: %s", self.config_file)
        self.version = root.attrib.get("version", "1")

        values = {}
        for setting in root.findall("setting"):
            setting_id = setting.get("id")
            setting_value = setting.get("value")
            if setting_value is None:
                setting_value = setting.text

            if setting_id in self.VALID_SETTINGS:
                values[setting_id] = setting_value.strip() if setting_value else None
            else:
                logging.warning(
                    "Unknown configuration setting: %s = %s (ignored)", setting_id, setting_value
                )

        self._process_settings(values)

    def _process_settings(self, settings_dict: Dict[str, Optional[str]]):
        """Process and type-convert settings, missing values keep their default"""
        for setting_id, setting_value in settings_dict.items():
            if setting_value is None:
                continue

            expected_type = self.VALID_SETTINGS[setting_id]
            if expected_type == bool:
                self.settings[setting_id] = self._parse_boolean(setting_value)
            elif expected_type == int:
                self.settings[setting_id] = self._parse_int(setting_id, setting_value)
            else:
                self.settings[setting_id] = setting_value

            logging.debug(
                "Processed setting: %s = %s (%s)",
                setting_id,
                "****" if setting_id == "password" else self.settings[setting_id],
                expected_type.__name__,
            )

    def _parse_boolean(self, value: Any) -> bool:
        """Parse boolean values from configuration"""
        if value is None:
            return False
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.lower() in ("true", "1", "yes", "on")
        return bool(value)

    def _parse_int(self, setting_id: str, value: Any) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            default = self.DEFAULTS[setting_id]
            logging.warning('Invalid %s setting "%s", using default %s', setting_id, value, default)
            return default

    def _override(self, setting_id: str, value: Any, source: str):
        original = self.settings.get(setting_id)
        self.settings[setting_id] = self._parse_int(setting_id, value)
        if self.settings[setting_id] != original:
            self.config_changes[setting_id] = f"{original} → {self.settings[setting_id]} (from {source})"

    def _validate_config(self):
        """Validate required settings and fall back to defaults for invalid values"""
        if not self.settings.get("username") or not self.settings.get("password"):
            logging.error("Schedules Direct username and password are required")
            logging.error("  Edit %s to set them", self.config_file)
            raise ValueError("Missing Schedules Direct account in configuration")

        workers = self.settings["workers"]
        if workers < 1 or workers > self.MAX_WORKERS:
            logging.warning(
                "Invalid workers %d (1-%d), using default %d",
                workers,
                self.MAX_WORKERS,
                self.DEFAULTS["workers"],
            )
            self.settings["workers"] = self.DEFAULTS["workers"]

        if self.settings["expectedcount"] < 0:
            logging.warning("Invalid expectedcount %d, using station count", self.settings["expectedcount"])
            self.settings["expectedcount"] = 0

        if self.settings["relogs"] < 1:
            logging.warning("Invalid relogs %d, using default 30", self.settings["relogs"])
            self.settings["relogs"] = self.DEFAULTS["relogs"]

        if self.settings["tmdb"] and not self.settings.get("tmdbkey"):
            logging.warning("tmdb=true requires a tmdbkey - movie posters disabled")
            self.settings["tmdb"] = False

    def get_lineups(self) -> List[str]:
        """Configured lineup ids, empty list = every lineup of the account"""
        value = self.settings.get("lineups", "")
        return [item.strip() for item in value.split(",") if item.strip()]

    def get_expected_count(self) -> Optional[int]:
        """Expected service count for the refresh cycle, None = station count"""
        count = self.settings.get("expectedcount", 0)
        return count if count > 0 else None

    def log_config_summary(self):
        """Log configuration summary"""
        logging.info("Configuration values processed:")
        for setting_id in self.SETTINGS_ORDER:
            if setting_id in self.config_changes:
                value = self.config_changes[setting_id]
            elif setting_id in ("password", "tmdbkey") and self.settings.get(setting_id):
                value = "****"
            else:
                value = self.settings.get(setting_id)
            logging.info("  %s: %s", setting_id, value)

        if not self.get_lineups():
            logging.info("No lineup filter - using every lineup of the account")
        if self.settings.get("tmdb"):
            logging.info("Movie posters enabled - missing movie artwork searched on TMDb")
