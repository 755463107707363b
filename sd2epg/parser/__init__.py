"""
sd2epg.parser - Guide data parsing

Turns provider records into guide graph nodes and links them together:
stations and schedules, programs, series references and series images.
"""

from .images import ImageCandidate, ImageSelector
from .programs import ProgramParser
from .resolver import ReferenceResolver
from .stations import StationParser

__all__ = [
    "ImageCandidate",
    "ImageSelector",
    "ProgramParser",
    "ReferenceResolver",
    "StationParser",
]
