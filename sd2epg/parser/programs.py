"""
Program record parser for sd2epg

Turns Schedules Direct program records into Program nodes: titles,
descriptions, numbering, ratings and classification flags. Contains only
parsing logic, no HTTP or caching code.
"""

import logging
from typing import Any, Dict, List, Optional

from ..models import GuideGraph, Program, ProgramFlags
from .resolver import ReferenceResolver

GENRE_FLAGS = {
    "action": ProgramFlags.ACTION,
    "adults only": ProgramFlags.ADULT_ONLY,
    "comedy": ProgramFlags.COMEDY,
    "documentary": ProgramFlags.DOCUMENTARY,
    "drama": ProgramFlags.DRAMA,
    "educational": ProgramFlags.EDUCATIONAL,
    "horror": ProgramFlags.HORROR,
    "independent": ProgramFlags.INDY,
    "music": ProgramFlags.MUSIC,
    "romance": ProgramFlags.ROMANCE,
    "science fiction": ProgramFlags.SCIENCE_FICTION,
    "soap": ProgramFlags.SOAP,
    "thriller": ProgramFlags.THRILLER,
    "news": ProgramFlags.NEWS,
    "children": ProgramFlags.KIDS,
    "reality": ProgramFlags.REALITY,
    "serial": ProgramFlags.SERIAL,
}

SHOW_TYPE_FLAGS = {
    "feature film": ProgramFlags.MOVIE,
    "tv movie": ProgramFlags.MOVIE,
    "short film": ProgramFlags.MOVIE | ProgramFlags.SHORT_FILM,
    "miniseries": ProgramFlags.MINISERIES,
    "limited series": ProgramFlags.LIMITED_SERIES,
    "paid programming": ProgramFlags.PAID_PROGRAMMING,
    "special": ProgramFlags.SPECIAL,
    "sports event": ProgramFlags.SPORTS,
    "sports non-event": ProgramFlags.SPORTS,
    "series": ProgramFlags.SERIES,
}

ADVISORY_FLAGS = {
    "adult situations": ProgramFlags.HAS_ADULT,
    "brief nudity": ProgramFlags.HAS_BRIEF_NUDITY,
    "graphic language": ProgramFlags.HAS_GRAPHIC_LANGUAGE,
    "graphic violence": ProgramFlags.HAS_GRAPHIC_VIOLENCE,
    "language": ProgramFlags.HAS_LANGUAGE,
    "mild violence": ProgramFlags.HAS_MILD_VIOLENCE,
    "nudity": ProgramFlags.HAS_NUDITY,
    "rape": ProgramFlags.HAS_RAPE,
    "strong sexual content": ProgramFlags.HAS_STRONG_SEXUAL_CONTENT,
    "violence": ProgramFlags.HAS_VIOLENCE,
}

# Unknown = 0
MPAA_RATINGS = {"G": 1, "PG": 2, "PG-13": 3, "R": 4, "NC-17": 5, "X": 6, "NR": 7, "AO": 8}
MPAA_BODY = "Motion Picture Association of America"


class ProgramParser:
    """Parses program records into the guide graph"""

    def __init__(self, graph: GuideGraph, resolver: ReferenceResolver):
        self.graph = graph
        self.resolver = resolver

    def parse_program(self, record: Dict[str, Any]) -> Optional[Program]:
        """
        Create or update the Program node for a provider record

        Args:
            record: Program record from the programs endpoint

        Returns:
            Optional[Program]: The program, None if the record is unusable
        """
        program_id = record.get("programID") if isinstance(record, dict) else None
        if not program_id:
            logging.debug("Skipping program record without programID")
            return None

        program = self.graph.get_program(program_id)
        program.md5 = record.get("md5")
        program.title = self._title(record)
        program.episode_title = record.get("episodeTitle150") or ""
        program.short_description, program.description = self._descriptions(record)
        program.original_airdate = record.get("originalAirDate")
        program.season_number, program.episode_number = self._numbering(record)
        program.genres = [g for g in record.get("genres") or [] if isinstance(g, str)]
        program.content_advisories = [a for a in record.get("contentAdvisory") or [] if isinstance(a, str)]
        program.content_ratings = self._content_ratings(record)
        program.mpaa_rating = MPAA_RATINGS.get(program.content_ratings.get(MPAA_BODY, ""), 0)
        program.teams = self._teams(record)
        program.year = self._year(record)
        program.half_stars = self._half_stars(record)
        program.flags = self._flags(program_id, record, program)

        series = self.resolver.register_program(program_id, program.title)
        program.series = series.series_id if series else None

        return program

    @staticmethod
    def _title(record: Dict[str, Any]) -> str:
        titles = record.get("titles") or []
        if titles and isinstance(titles[0], dict):
            return titles[0].get("title120", "")
        return ""

    @staticmethod
    def _descriptions(record: Dict[str, Any]):
        descriptions = record.get("descriptions") or {}
        short = ""
        full = ""
        for item in descriptions.get("description100") or []:
            short = item.get("description", "")
            if item.get("descriptionLanguage", "en").startswith("en"):
                break
        for item in descriptions.get("description1000") or []:
            full = item.get("description", "")
            if item.get("descriptionLanguage", "en").startswith("en"):
                break
        return short, full or short

    @staticmethod
    def _numbering(record: Dict[str, Any]):
        for metadata in record.get("metadata") or []:
            gracenote = metadata.get("Gracenote") if isinstance(metadata, dict) else None
            if isinstance(gracenote, dict):
                try:
                    return int(gracenote.get("season") or 0), int(gracenote.get("episode") or 0)
                except (TypeError, ValueError):
                    logging.debug("Invalid episode numbering in %s", record.get("programID"))
        return 0, 0

    @staticmethod
    def _content_ratings(record: Dict[str, Any]) -> Dict[str, str]:
        ratings = {}
        for rating in record.get("contentRating") or []:
            if isinstance(rating, dict) and rating.get("body") and rating.get("code"):
                ratings.setdefault(rating["body"], rating["code"])
        return ratings

    @staticmethod
    def _teams(record: Dict[str, Any]) -> List[str]:
        details = record.get("eventDetails") or {}
        return [team.get("name", "") for team in details.get("teams") or [] if isinstance(team, dict)]

    @staticmethod
    def _year(record: Dict[str, Any]) -> int:
        movie = record.get("movie") or {}
        try:
            return int(movie.get("year") or 0)
        except (TypeError, ValueError):
            return 0

    @staticmethod
    def _half_stars(record: Dict[str, Any]) -> int:
        # qualityRating uses a 4 star scale, half stars count double
        for rating in (record.get("movie") or {}).get("qualityRating") or []:
            try:
                stars = float(rating.get("rating", 0)) * 4 / float(rating.get("maxRating", 4))
                return int(round(stars * 2))
            except (TypeError, ValueError, ZeroDivisionError):
                continue
        return 0

    def _flags(self, program_id: str, record: Dict[str, Any], program: Program) -> ProgramFlags:
        flags = ProgramFlags.NONE

        for genre in program.genres:
            flags |= GENRE_FLAGS.get(genre.lower(), ProgramFlags.NONE)
            if genre.lower() in ("sports event", "sports non-event", "sports talk"):
                flags |= ProgramFlags.SPORTS

        flags |= SHOW_TYPE_FLAGS.get((record.get("showType") or "").lower(), ProgramFlags.NONE)

        for advisory in program.content_advisories:
            flags |= ADVISORY_FLAGS.get(advisory.lower(), ProgramFlags.NONE)

        entity_type = (record.get("entityType") or "").lower()
        if entity_type == "episode":
            flags |= ProgramFlags.SERIES | ProgramFlags.PROGRAM_EPISODIC
        elif entity_type == "movie" or program_id.startswith("MV"):
            flags |= ProgramFlags.MOVIE
        elif entity_type == "sports" or program_id.startswith("SP"):
            flags |= ProgramFlags.SPORTS

        # SH programs carry the generic series description
        if program_id.startswith("SH"):
            flags |= ProgramFlags.GENERIC

        for keyword, flag in (
            ("Season Premiere", ProgramFlags.SEASON_PREMIERE),
            ("Season Finale", ProgramFlags.SEASON_FINALE),
            ("Series Premiere", ProgramFlags.SERIES_PREMIERE),
            ("Series Finale", ProgramFlags.SERIES_FINALE),
        ):
            if keyword in (record.get("keyWords") or {}).get("Premiere", []):
                flags |= flag | ProgramFlags.PREMIERE

        return flags
