"""
sd2epg.models - Program guide graph

In-memory guide graph assembled by the pipeline and handed to the external
serializer. Every node carries a sequential numeric id (first-reference order)
and a uid that stays stable between runs.
"""

import enum
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from .parser.images import ImageCandidate


class ProgramFlags(enum.Flag):
    """Classification flags of a program"""

    NONE = 0
    ACTION = enum.auto()
    ADULT_ONLY = enum.auto()
    COMEDY = enum.auto()
    DOCUMENTARY = enum.auto()
    DRAMA = enum.auto()
    EDUCATIONAL = enum.auto()
    HORROR = enum.auto()
    INDY = enum.auto()
    MUSIC = enum.auto()
    ROMANCE = enum.auto()
    SCIENCE_FICTION = enum.auto()
    SOAP = enum.auto()
    THRILLER = enum.auto()
    PROGRAM_EPISODIC = enum.auto()
    MOVIE = enum.auto()
    MINISERIES = enum.auto()
    LIMITED_SERIES = enum.auto()
    PAID_PROGRAMMING = enum.auto()
    SERIAL = enum.auto()
    SERIES = enum.auto()
    SEASON_PREMIERE = enum.auto()
    SEASON_FINALE = enum.auto()
    SERIES_PREMIERE = enum.auto()
    SERIES_FINALE = enum.auto()
    SHORT_FILM = enum.auto()
    SPECIAL = enum.auto()
    SPORTS = enum.auto()
    NEWS = enum.auto()
    KIDS = enum.auto()
    REALITY = enum.auto()
    GENERIC = enum.auto()
    PREMIERE = enum.auto()
    HAS_ADULT = enum.auto()
    HAS_BRIEF_NUDITY = enum.auto()
    HAS_GRAPHIC_LANGUAGE = enum.auto()
    HAS_GRAPHIC_VIOLENCE = enum.auto()
    HAS_LANGUAGE = enum.auto()
    HAS_MILD_VIOLENCE = enum.auto()
    HAS_NUDITY = enum.auto()
    HAS_RAPE = enum.auto()
    HAS_STRONG_SEXUAL_CONTENT = enum.auto()
    HAS_VIOLENCE = enum.auto()

    def names(self) -> List[str]:
        """Names of the individual flags set, in declaration order"""
        return [member.name for member in type(self) if member.value and member in self]


@dataclass
class GuideImage:
    id: int
    uri: str

    @property
    def uid(self) -> str:
        return f"!Image!{self.uri}"

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "uid": self.uid, "uri": self.uri}


@dataclass
class ScheduleEntry:
    program_id: str
    start_time: str
    duration: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "program": self.program_id,
            "startTime": self.start_time,
            "duration": self.duration,
        }


@dataclass
class Station:
    id: int
    station_id: str
    call_sign: str = ""
    name: str = ""
    affiliate: str = ""
    logo_url: Optional[str] = None
    channels: List[str] = field(default_factory=list)
    schedule: List[ScheduleEntry] = field(default_factory=list)

    @property
    def uid(self) -> str:
        return f"!Service!{self.station_id}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "uid": self.uid,
            "stationId": self.station_id,
            "callSign": self.call_sign,
            "name": self.name,
            "affiliate": self.affiliate,
            "logo": self.logo_url,
            "channels": list(self.channels),
            "schedule": [entry.to_dict() for entry in self.schedule],
        }


@dataclass
class Lineup:
    id: int
    lineup_id: str
    name: str = ""
    location: str = ""
    station_ids: List[str] = field(default_factory=list)

    @property
    def uid(self) -> str:
        return f"!Lineup!{self.lineup_id}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "uid": self.uid,
            "lineup": self.lineup_id,
            "name": self.name,
            "location": self.location,
            "stations": list(self.station_ids),
        }


@dataclass
class SeriesInfo:
    """
    Series level aggregate shared by every episode of a show.

    Sports event groups use a non-numeric key starting with "SP"; every other
    series is keyed by the 8-digit body of its provider id.
    """

    id: int
    series_id: str
    title: str = ""
    short_description: str = ""
    description: str = ""
    start_airdate: Optional[str] = None
    guide_image: Optional[int] = None
    series_images: List["ImageCandidate"] = field(default_factory=list)

    @property
    def uid(self) -> str:
        return f"!Series!{self.series_id}"

    @property
    def is_sports(self) -> bool:
        return self.series_id.startswith("SP")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "uid": self.uid,
            "title": self.title,
            "shortDescription": self.short_description,
            "description": self.description,
            "startAirdate": self.start_airdate,
            "guideImage": self.guide_image,
        }


@dataclass
class Program:
    id: int
    program_id: str
    title: str = ""
    episode_title: str = ""
    description: str = ""
    short_description: str = ""
    language: str = ""
    year: int = 0
    season_number: int = 0
    episode_number: int = 0
    original_airdate: Optional[str] = None
    md5: Optional[str] = None
    content_ratings: Dict[str, str] = field(default_factory=dict)
    content_advisories: List[str] = field(default_factory=list)
    genres: List[str] = field(default_factory=list)
    teams: List[str] = field(default_factory=list)
    mpaa_rating: int = 0
    half_stars: int = 0
    flags: ProgramFlags = ProgramFlags.NONE
    series: Optional[str] = None
    guide_image: Optional[int] = None

    @property
    def uid(self) -> str:
        return f"!Program!{self.program_id[:10]}_{self.program_id[10:]}"

    def has(self, flag: ProgramFlags) -> bool:
        return flag in self.flags

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "uid": self.uid,
            "title": self.title,
            "episodeTitle": self.episode_title,
            "description": self.description,
            "shortDescription": self.short_description,
            "language": self.language,
            "year": self.year,
            "seasonNumber": self.season_number,
            "episodeNumber": self.episode_number,
            "originalAirdate": self.original_airdate,
            "contentRatings": dict(self.content_ratings),
            "contentAdvisories": list(self.content_advisories),
            "genres": list(self.genres),
            "teams": list(self.teams),
            "mpaaRating": self.mpaa_rating,
            "halfStars": self.half_stars,
            "flags": self.flags.names(),
            "series": self.series,
            "guideImage": self.guide_image,
        }


class GuideGraph:
    """Root container of the guide graph, rebuilt on every run"""

    def __init__(self):
        self.lineups: "OrderedDict[str, Lineup]" = OrderedDict()
        self.stations: "OrderedDict[str, Station]" = OrderedDict()
        self.programs: "OrderedDict[str, Program]" = OrderedDict()
        self.series_infos: "OrderedDict[str, SeriesInfo]" = OrderedDict()
        self.guide_images: "OrderedDict[str, GuideImage]" = OrderedDict()

    def get_lineup(self, lineup_id: str, name: str = "", location: str = "") -> Lineup:
        lineup = self.lineups.get(lineup_id)
        if lineup is None:
            lineup = Lineup(len(self.lineups) + 1, lineup_id, name=name, location=location)
            self.lineups[lineup_id] = lineup
        return lineup

    def get_station(self, station_id: str) -> Station:
        station = self.stations.get(station_id)
        if station is None:
            station = Station(len(self.stations) + 1, station_id)
            self.stations[station_id] = station
        return station

    def get_program(self, program_id: str) -> Program:
        program = self.programs.get(program_id)
        if program is None:
            program = Program(len(self.programs) + 1, program_id)
            self.programs[program_id] = program
        return program

    def find_program(self, program_id: str) -> Optional[Program]:
        return self.programs.get(program_id)

    def get_series_info(self, series_id: str, title: str = "") -> SeriesInfo:
        """Get series info for a key, creating it on first reference"""
        series = self.series_infos.get(series_id)
        if series is None:
            series = SeriesInfo(len(self.series_infos) + 1, series_id, title=title)
            self.series_infos[series_id] = series
        elif title and not series.title:
            series.title = title
        return series

    def find_series_info(self, series_id: str) -> Optional[SeriesInfo]:
        return self.series_infos.get(series_id)

    def get_guide_image(self, uri: str) -> GuideImage:
        """Get the deduplicated image entry for a URI"""
        image = self.guide_images.get(uri)
        if image is None:
            image = GuideImage(len(self.guide_images) + 1, uri)
            self.guide_images[uri] = image
        return image

    def get_statistics(self) -> Dict[str, int]:
        return {
            "lineups": len(self.lineups),
            "stations": len(self.stations),
            "programs": len(self.programs),
            "series": len(self.series_infos),
            "images": len(self.guide_images),
        }

    def to_dict(self) -> Dict[str, Any]:
        """Plain structure for the external XML/JSON serializer"""
        return {
            "lineups": [lineup.to_dict() for lineup in self.lineups.values()],
            "stations": [station.to_dict() for station in self.stations.values()],
            "programs": [program.to_dict() for program in self.programs.values()],
            "seriesInfos": [series.to_dict() for series in self.series_infos.values()],
            "guideImages": [image.to_dict() for image in self.guide_images.values()],
        }
