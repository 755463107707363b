"""
Reference resolution for sd2epg

Maps provider identifiers onto series nodes of the guide graph. Provider ids
are a 2-letter type prefix, an 8-digit body and a 4-digit suffix, e.g.
SH012345670000 for a series or SP003189440000 for a sports event. Regular
series are keyed by the 8-digit body; sports events sharing a title are
grouped under one logical key through a secondary index.
"""

import hashlib
import logging
from collections import OrderedDict
from typing import List, Optional

from ..models import GuideGraph, SeriesInfo

SERIES_PREFIXES = ("SH", "EP")
SPORTS_PREFIX = "SP"


class ReferenceResolver:
    """Resolves provider records to series nodes, creating them on first reference"""

    def __init__(self, graph: GuideGraph):
        self.graph = graph
        # sports key -> base ids (first 10 chars) of every event in the group
        self.sports_series: "OrderedDict[str, List[str]]" = OrderedDict()
        self.missing_references = 0

    @staticmethod
    def is_sports_key(series_key: str) -> bool:
        return series_key.startswith(SPORTS_PREFIX)

    @staticmethod
    def is_numeric_key(series_key: str) -> bool:
        return series_key.isdigit()

    @staticmethod
    def sports_key(title: str) -> str:
        """Logical key shared by all sports events with the same title"""
        normalized = " ".join((title or "").lower().split())
        return SPORTS_PREFIX + hashlib.sha1(normalized.encode("utf-8")).hexdigest()[:8]

    @staticmethod
    def cache_key(series: SeriesInfo) -> str:
        """Asset cache id of a series"""
        if series.is_sports:
            return series.series_id
        return f"SH{series.series_id}0000"

    def add_sports_event(self, series_key: str, program_id: str):
        base_id = program_id[:10]
        events = self.sports_series.setdefault(series_key, [])
        if base_id not in events:
            events.append(base_id)

    def register_program(self, program_id: str, title: str = "") -> Optional[SeriesInfo]:
        """
        Link a program id to its series, creating the series on first reference

        Returns:
            Optional[SeriesInfo]: Owning series, None for programs without one
        """
        prefix = program_id[:2]

        if prefix in SERIES_PREFIXES and len(program_id) >= 10:
            return self.graph.get_series_info(program_id[2:10], title=title)

        if prefix == SPORTS_PREFIX and len(program_id) >= 10:
            series_key = self.sports_key(title or program_id)
            self.add_sports_event(series_key, program_id)
            return self.graph.get_series_info(series_key, title=title)

        return None

    def series_key_for(self, record_id: str) -> Optional[str]:
        """Series key of a provider record id, None when it cannot be determined"""
        if not record_id or len(record_id) < 10:
            return None

        prefix = record_id[:2]
        if prefix == SPORTS_PREFIX:
            base_id = record_id[:10]
            for series_key, events in self.sports_series.items():
                if base_id in events:
                    return series_key
            return None

        if prefix in SERIES_PREFIXES:
            return record_id[2:10]

        return None

    def resolve(self, record_id: str) -> Optional[SeriesInfo]:
        """
        Resolve a provider record id to its series node

        Regular series are created when missing; sports records must go
        through the sports index. Unknown references are logged and skipped.
        """
        series_key = self.series_key_for(record_id)
        if series_key is None:
            self.missing_references += 1
            logging.warning("  Cannot determine series for record %s - skipped", record_id)
            return None

        return self.graph.get_series_info(series_key)

    def request_ids(self, series: SeriesInfo) -> List[str]:
        """Provider ids (without suffix) to query for a series"""
        if series.is_sports:
            return list(self.sports_series.get(series.series_id, []))
        if self.is_numeric_key(series.series_id):
            return [f"SH{series.series_id}"]
        return []
