"""
sd2epg.utils - Utilities and cache management

Provides the persistent asset cache shared by every pipeline stage and the
time helpers driving the refresh cycle of cached data.
"""

import calendar
import gzip
import json
import logging
import os
import threading
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, Optional


class CacheAssetNotFound(KeyError):
    """Raised when an asset id is not present in the cache"""


class TimeUtils:
    """Time and date utilities"""

    @staticmethod
    def days_in_month(day: date) -> int:
        return calendar.monthrange(day.year, day.month)[1]

    @staticmethod
    def is_refresh_due(numeric_id: int, expected_count: int, today: Optional[date] = None) -> bool:
        """
        Decide whether a cached entity is due for its periodic refresh

        The refresh load is spread across the month: an entity is refreshed on
        the day where (id * expected_count) mod days_in_month == day + 1.

        Args:
            numeric_id: Numeric body of the provider id
            expected_count: Expected number of entities (services) in the guide
            today: Day to evaluate, defaults to the current local date

        Returns:
            bool: True if the cached entry should be fetched again
        """
        if today is None:
            today = date.today()
        return (numeric_id * expected_count) % TimeUtils.days_in_month(today) == today.day + 1


class CacheManager:
    """Manages the persistent id -> text asset cache"""

    CACHE_FILENAME = "assets.json.gz"

    def __init__(self, cache_dir: Path):
        self.cache_dir = Path(cache_dir)
        # Create cache directory with proper 755 permissions (rwxr-xr-x)
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True, mode=0o755)
        except OSError:
            self.cache_dir.mkdir(parents=True, exist_ok=True)

        self.cache_file = self.cache_dir / self.CACHE_FILENAME
        self.lock = threading.RLock()
        self.assets: Dict[str, Dict[str, Optional[str]]] = {}
        self.current: set = set()
        self.load_cache()

    def load_cache(self) -> int:
        """Load persisted assets, returns number of records loaded"""
        with self.lock:
            self.assets = {}
            self.current = set()

            if not self.cache_file.exists():
                logging.info("No asset cache found - first run, starting empty")
                return 0

            try:
                with gzip.open(self.cache_file, "rb") as f:
                    data = json.loads(f.read())

                for asset_id, record in data.items():
                    if not isinstance(record, dict):
                        continue
                    self.assets[asset_id] = {
                        "json": record.get("json") or "",
                        "images": record.get("images"),
                    }

                logging.info("Asset cache loaded: %d entries", len(self.assets))
            except (OSError, EOFError, ValueError) as e:
                logging.warning("Error loading asset cache %s: %s", self.cache_file.name, str(e))
                logging.warning("  Continuing with an empty cache")
                self.assets = {}

            return len(self.assets)

    def add_asset(self, asset_id: str, text: str):
        """Create the record or overwrite its JSON entry"""
        with self.lock:
            record = self.assets.get(asset_id)
            if record is None:
                self.assets[asset_id] = {"json": text, "images": None}
            else:
                record["json"] = text
            self.current.add(asset_id)

    def get_asset(self, asset_id: str) -> str:
        with self.lock:
            record = self.assets.get(asset_id)
            if record is None:
                raise CacheAssetNotFound(asset_id)
            self.current.add(asset_id)
            return record["json"]

    def contains_key(self, asset_id: str) -> bool:
        with self.lock:
            return asset_id in self.assets

    def get_asset_images(self, asset_id: str) -> Optional[str]:
        """
        Get the serialized images stored for an asset

        Returns None when images were never checked and an empty string when
        the provider confirmed there is nothing to show.
        """
        with self.lock:
            record = self.assets.get(asset_id)
            if record is None:
                return None
            self.current.add(asset_id)
            return record["images"]

    def update_asset_images(self, asset_id: str, text: str):
        """Replace only the images of a record, keeping its JSON entry"""
        with self.lock:
            record = self.assets.setdefault(asset_id, {"json": "", "images": None})
            record["images"] = text
            self.current.add(asset_id)

    def update_asset_json_entry(self, asset_id: str, text: str):
        """Replace only the JSON entry of a record, keeping its images"""
        with self.lock:
            record = self.assets.setdefault(asset_id, {"json": "", "images": None})
            record["json"] = text
            self.current.add(asset_id)

    def clean_cache(self, keep: Optional[Iterable[str]] = None) -> int:
        """Drop records that were not used during this run"""
        with self.lock:
            keep_ids = self.current.union(keep or [])
            stale = [asset_id for asset_id in self.assets if asset_id not in keep_ids]
            for asset_id in stale:
                del self.assets[asset_id]

            if stale:
                logging.info(
                    "Asset cache cleanup: %d removed, %d kept", len(stale), len(self.assets)
                )
            return len(stale)

    def write_cache(self) -> bool:
        """Flush all records to disk"""
        with self.lock:
            data = {
                asset_id: {"json": record["json"], "images": record["images"]}
                for asset_id, record in self.assets.items()
            }

        temp_file = self.cache_file.with_suffix(".tmp")
        try:
            with gzip.open(temp_file, "wb") as f:
                f.write(json.dumps(data, separators=(",", ":")).encode("utf-8"))
            os.replace(temp_file, self.cache_file)
            logging.info("Asset cache written: %d entries (%s)", len(data), self.cache_file.name)
            return True
        except OSError as e:
            logging.warning("Error writing asset cache %s: %s", self.cache_file.name, str(e))
            return False

    def get_statistics(self) -> Dict[str, int]:
        with self.lock:
            return {
                "entries": len(self.assets),
                "used": len(self.current),
                "with_images": sum(1 for r in self.assets.values() if r["images"]),
            }
