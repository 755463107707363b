"""
sd2epg.downloader.schedules_direct - Schedules Direct JSON API

Thin endpoint layer over RateLimitedClient: login, lineups, schedules,
programs, generic series descriptions and artwork lookups. Every lookup
returns the decoded JSON or None when the request failed.
"""

import hashlib
import logging
from typing import Any, Dict, List, Optional

from .base import RateLimitedClient


class SchedulesDirectApi:
    """Schedules Direct JSON API client"""

    BASE_URL = "https://json.schedulesdirect.org/20141201/"

    # Provider request limits
    MAX_QUERIES = 5000
    MAX_IMG_QUERIES = 500
    MAX_PARALLEL_DOWNLOADS = 4

    def __init__(self, client: RateLimitedClient):
        self.client = client
        self.token: Optional[str] = None

    @classmethod
    def create(cls, pool_size: int = MAX_PARALLEL_DOWNLOADS, user_agent: Optional[str] = None):
        return cls(RateLimitedClient(cls.BASE_URL, user_agent=user_agent, pool_size=pool_size))

    @property
    def image_base_url(self) -> str:
        return self.client.base_url

    @staticmethod
    def hash_password(password: str) -> str:
        """Passwords are sent as a SHA-1 hex digest"""
        return hashlib.sha1(password.encode("utf-8")).hexdigest()

    def login(self, username: str, password_hash: str) -> bool:
        """
        Request a session token

        A failed login is a configuration failure: the client stops retrying
        rate limited requests afterwards.
        """
        response = self.client.post_json(
            "token", {"username": username, "password": password_hash}
        )

        if isinstance(response, dict) and response.get("code") == 0 and response.get("token"):
            self.token = response["token"]
            self.client.set_header("token", self.token)
            logging.info("Schedules Direct login successful for user %s", username)
            return True

        message = response.get("message") if isinstance(response, dict) else "no response"
        logging.error("Schedules Direct login failed: %s", message)
        self.client.is_alive = False
        return False

    def get_user_lineups(self) -> Optional[List[Dict[str, Any]]]:
        response = self.client.get_json("lineups")
        if not isinstance(response, dict):
            return None
        return response.get("lineups", [])

    def get_lineup_map(self, lineup_id: str) -> Optional[Dict[str, Any]]:
        response = self.client.get_json(f"lineups/{lineup_id}")
        return response if isinstance(response, dict) else None

    def get_schedules(self, station_ids: List[str]) -> Optional[List[Dict[str, Any]]]:
        payload = [{"stationID": station_id} for station_id in station_ids]
        response = self.client.post_json("schedules", payload)
        return response if isinstance(response, list) else None

    def get_programs(self, program_ids: List[str]) -> Optional[List[Optional[Dict[str, Any]]]]:
        response = self.client.post_json("programs", list(program_ids))
        return response if isinstance(response, list) else None

    def get_generic_descriptions(self, program_ids: List[str]) -> Optional[Dict[str, Dict[str, Any]]]:
        response = self.client.post_json("metadata/description", list(program_ids))
        return response if isinstance(response, dict) else None

    def get_artwork(self, program_ids: List[str]) -> Optional[List[Dict[str, Any]]]:
        response = self.client.post_json("metadata/programs", list(program_ids))
        return response if isinstance(response, list) else None
