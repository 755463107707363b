"""
Lineup and station parsing for sd2epg

Converts lineup maps into Lineup and Station nodes, and station schedules
into schedule entries.
"""

import logging
from typing import Any, Dict, List, Optional

from ..models import GuideGraph, Lineup, ScheduleEntry, Station


class StationParser:
    """Builds lineups, stations and schedules in the guide graph"""

    def __init__(self, graph: GuideGraph):
        self.graph = graph

    @staticmethod
    def channel_number(entry: Dict[str, Any]) -> str:
        """Channel number of a lineup map entry, whichever format the lineup uses"""
        if entry.get("channel"):
            return str(entry["channel"])
        if entry.get("atscMajor") is not None:
            return f"{entry['atscMajor']}.{entry.get('atscMinor', 0)}"
        if entry.get("uhfVhf") is not None:
            return str(entry["uhfVhf"])
        return ""

    @staticmethod
    def logo_url(station: Dict[str, Any]) -> Optional[str]:
        logos = station.get("stationLogo") or []
        if logos and isinstance(logos[0], dict) and logos[0].get("URL"):
            return logos[0]["URL"]
        logo = station.get("logo")
        if isinstance(logo, dict):
            return logo.get("URL")
        return None

    def parse_lineup(self, lineup_info: Dict[str, Any], lineup_map: Dict[str, Any]) -> Lineup:
        """
        Add a lineup and its stations to the graph

        Args:
            lineup_info: Entry of the user lineup list
            lineup_map: Response of the lineup map endpoint

        Returns:
            Lineup: The lineup node
        """
        lineup = self.graph.get_lineup(
            lineup_info.get("lineup", ""),
            name=lineup_info.get("name", ""),
            location=lineup_info.get("location", ""),
        )

        channels: Dict[str, List[str]] = {}
        for entry in lineup_map.get("map") or []:
            station_id = entry.get("stationID")
            if not station_id:
                continue
            number = self.channel_number(entry)
            if number:
                channels.setdefault(station_id, []).append(number)

        for record in lineup_map.get("stations") or []:
            station = self.parse_station(record)
            if station is None:
                continue
            for number in channels.get(station.station_id, []):
                if number not in station.channels:
                    station.channels.append(number)
            if station.station_id not in lineup.station_ids:
                lineup.station_ids.append(station.station_id)

        logging.info(
            "  Lineup %s: %d stations (%s)", lineup.lineup_id, len(lineup.station_ids), lineup.name
        )
        return lineup

    def parse_station(self, record: Dict[str, Any]) -> Optional[Station]:
        station_id = record.get("stationID") if isinstance(record, dict) else None
        if not station_id:
            return None

        station = self.graph.get_station(station_id)
        station.call_sign = record.get("callsign") or station.call_sign
        station.name = record.get("name") or station.name
        station.affiliate = record.get("affiliate") or station.affiliate
        station.logo_url = self.logo_url(record) or station.logo_url
        return station

    def parse_schedule(self, record: Dict[str, Any]) -> List[str]:
        """
        Attach a station schedule, returns the program ids it references

        Schedules of stations outside the configured lineups are ignored.
        """
        station_id = record.get("stationID") if isinstance(record, dict) else None
        station = self.graph.stations.get(station_id) if station_id else None
        if station is None:
            logging.debug("Schedule for unknown station %s - skipped", station_id)
            return []

        program_ids = []
        for airing in record.get("programs") or []:
            program_id = airing.get("programID")
            if not program_id:
                continue
            station.schedule.append(
                ScheduleEntry(
                    program_id=program_id,
                    start_time=airing.get("airDateTime", ""),
                    duration=int(airing.get("duration") or 0),
                )
            )
            program_ids.append(program_id)
        return program_ids
