from sd2epg.models import GuideGraph, ProgramFlags
from sd2epg.parser import ProgramParser, ReferenceResolver


def make_parser():
    graph = GuideGraph()
    return graph, ProgramParser(graph, ReferenceResolver(graph))


def test_episode_record():
    graph, parser = make_parser()
    program = parser.parse_program(
        {
            "programID": "EP012345670012",
            "md5": "abc",
            "titles": [{"title120": "Show"}],
            "episodeTitle150": "Pilot",
            "descriptions": {
                "description100": [{"descriptionLanguage": "en", "description": "Short."}],
                "description1000": [{"descriptionLanguage": "en", "description": "Long."}],
            },
            "originalAirDate": "2020-01-05",
            "genres": ["Comedy", "Drama"],
            "contentRating": [{"body": "USA Parental Rating", "code": "TV14"}],
            "contentAdvisory": ["Language"],
            "metadata": [{"Gracenote": {"season": 2, "episode": 5}}],
            "entityType": "Episode",
            "showType": "Series",
        }
    )

    assert program.uid == "!Program!EP01234567_0012"
    assert program.title == "Show"
    assert program.episode_title == "Pilot"
    assert program.short_description == "Short."
    assert program.description == "Long."
    assert (program.season_number, program.episode_number) == (2, 5)
    assert program.content_ratings == {"USA Parental Rating": "TV14"}
    for flag in (
        ProgramFlags.COMEDY,
        ProgramFlags.DRAMA,
        ProgramFlags.SERIES,
        ProgramFlags.PROGRAM_EPISODIC,
        ProgramFlags.HAS_LANGUAGE,
    ):
        assert program.has(flag)
    assert not program.has(ProgramFlags.MOVIE)
    assert program.series == "01234567"
    assert graph.find_series_info("01234567").title == "Show"


def test_movie_record():
    graph, parser = make_parser()
    program = parser.parse_program(
        {
            "programID": "MV000123450000",
            "titles": [{"title120": "Heat"}],
            "entityType": "Movie",
            "showType": "Feature Film",
            "movie": {
                "year": "1995",
                "qualityRating": [{"ratingsBody": "TMS", "rating": "3.5", "maxRating": "4"}],
            },
            "contentRating": [{"body": "Motion Picture Association of America", "code": "R"}],
        }
    )

    assert program.has(ProgramFlags.MOVIE)
    assert program.year == 1995
    assert program.half_stars == 7
    assert program.mpaa_rating == 4
    assert program.series is None
    assert not graph.series_infos


def test_generic_series_record():
    _, parser = make_parser()
    program = parser.parse_program({"programID": "SH012345670000", "titles": [{"title120": "Show"}]})
    assert program.has(ProgramFlags.GENERIC)
    assert program.description == ""


def test_sports_record():
    graph, parser = make_parser()
    program = parser.parse_program(
        {
            "programID": "SP000111220000",
            "titles": [{"title120": "NHL Hockey"}],
            "entityType": "Sports",
            "eventDetails": {"teams": [{"name": "Canadiens"}, {"name": "Bruins"}]},
        }
    )
    assert program.has(ProgramFlags.SPORTS)
    assert program.teams == ["Canadiens", "Bruins"]
    assert program.series.startswith("SP")
    assert graph.find_series_info(program.series).title == "NHL Hockey"


def test_short_description_used_when_no_long_one():
    _, parser = make_parser()
    program = parser.parse_program(
        {
            "programID": "EP012345670001",
            "descriptions": {"description100": [{"description": "Only short."}]},
        }
    )
    assert program.description == "Only short."


def test_unusable_record():
    graph, parser = make_parser()
    assert parser.parse_program({"titles": []}) is None
    assert parser.parse_program(None) is None
    assert not graph.programs


def test_premiere_keywords():
    _, parser = make_parser()
    program = parser.parse_program(
        {"programID": "EP012345670001", "keyWords": {"Premiere": ["Season Premiere"]}}
    )
    assert program.has(ProgramFlags.SEASON_PREMIERE)
    assert program.has(ProgramFlags.PREMIERE)
