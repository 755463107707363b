"""
sd2epg.downloader.tmdb - The Movie Database lookups

Searches movie posters for programs the guide provider has no artwork for.
The image configuration endpoint is read once to pick the smallest size
variant at or above the minimum width.
"""

import logging
import urllib.parse
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .base import RateLimitedClient


@dataclass
class TmdbMovie:
    id: int
    title: str
    release_date: str = ""
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None

    @property
    def year(self) -> Optional[int]:
        if self.release_date and len(self.release_date) >= 4 and self.release_date[:4].isdigit():
            return int(self.release_date[:4])
        return None

    @property
    def display_title(self) -> str:
        return f"{self.title} ({self.year})" if self.year else self.title


class TmdbApi:
    """TMDb v3 client"""

    BASE_URL = "https://api.themoviedb.org/3/"
    MIN_POSTER_WIDTH = 300
    MIN_BACKDROP_WIDTH = 500

    def __init__(self, client: RateLimitedClient, api_key: str, include_adult: bool = False):
        self.client = client
        self.api_key = api_key
        self.include_adult = include_adult
        self.image_base_url: Optional[str] = None
        self.poster_size: Optional[str] = None
        self.backdrop_size: Optional[str] = None

    @classmethod
    def create(cls, api_key: str, include_adult: bool = False, pool_size: int = 4):
        return cls(RateLimitedClient(cls.BASE_URL, pool_size=pool_size), api_key, include_adult)

    @property
    def is_alive(self) -> bool:
        return self.client.is_alive

    @staticmethod
    def select_size(sizes: List[str], min_width: int) -> Optional[str]:
        """Smallest "w<N>" variant with N >= min_width"""
        for size in sizes:
            try:
                width = int(size[1:])
            except (TypeError, ValueError):
                continue
            if width >= min_width:
                return size
        return None

    def initialize(self) -> bool:
        """Read the image configuration, disabling the client on failure"""
        config = self.client.get_json(f"configuration?api_key={self.api_key}")
        images = config.get("images") if isinstance(config, dict) else None

        if not isinstance(images, dict):
            logging.warning("Failed to retrieve TMDb configuration - movie posters disabled")
            self.client.is_alive = False
            return False

        self.image_base_url = images.get("secure_base_url") or images.get("base_url")
        self.poster_size = self.select_size(images.get("poster_sizes", []), self.MIN_POSTER_WIDTH)
        self.backdrop_size = self.select_size(
            images.get("backdrop_sizes", []), self.MIN_BACKDROP_WIDTH
        )

        logging.info(
            "TMDb configuration retrieved (poster size: %s, backdrop size: %s)",
            self.poster_size,
            self.backdrop_size,
        )
        return True

    def search_catalog(self, title: str, year: int = 0, language: str = "en") -> Optional[List[TmdbMovie]]:
        """
        Search movies by title

        Returns:
            Optional[List[TmdbMovie]]: Matches (possibly empty), None on failure
        """
        params = [
            ("api_key", self.api_key),
            ("language", language),
            ("query", title),
            ("include_adult", str(self.include_adult).lower()),
        ]
        if year:
            params.append(("primary_release_year", str(year)))

        response = self.client.get_json(f"search/movie?{urllib.parse.urlencode(params)}")
        if not isinstance(response, dict):
            return None

        movies = [self._parse_movie(result) for result in response.get("results") or []]
        movies = [movie for movie in movies if movie is not None]
        if movies:
            logging.debug(
                'TMDb catalog search for "%s" from %s found %d results', title, year, len(movies)
            )
        return movies

    @staticmethod
    def _parse_movie(result: Dict[str, Any]) -> Optional[TmdbMovie]:
        if not isinstance(result, dict) or "id" not in result:
            return None
        return TmdbMovie(
            id=result["id"],
            title=result.get("title", ""),
            release_date=result.get("release_date") or "",
            poster_path=result.get("poster_path"),
            backdrop_path=result.get("backdrop_path"),
        )

    def poster_url(self, movie: TmdbMovie) -> Optional[str]:
        if not movie.poster_path or not self.image_base_url or not self.poster_size:
            return None
        return f"{self.image_base_url}{self.poster_size}{movie.poster_path}"

    def poster_images(self, movie: TmdbMovie) -> List[Dict[str, Any]]:
        """Poster of a movie in the provider image record format"""
        url = self.poster_url(movie)
        if url is None:
            return []

        width = int(self.poster_size[1:])
        return [
            {
                "uri": url,
                "aspect": "2x3",
                "category": "Poster Art",
                "size": "Md",
                "width": width,
                "height": int(width * 1.5),
            }
        ]
