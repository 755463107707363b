from unittest.mock import MagicMock

from sd2epg.downloader import TmdbApi

CONFIGURATION = {
    "images": {
        "secure_base_url": "https://image.tmdb.org/t/p/",
        "poster_sizes": ["w92", "w154", "w185", "w342", "w500", "w780", "original"],
        "backdrop_sizes": ["w300", "w780", "w1280", "original"],
    }
}


def test_select_size():
    assert TmdbApi.select_size(CONFIGURATION["images"]["poster_sizes"], 300) == "w342"
    assert TmdbApi.select_size(CONFIGURATION["images"]["backdrop_sizes"], 500) == "w780"
    assert TmdbApi.select_size(["w92", "original"], 300) is None


def test_initialize_reads_image_configuration():
    client = MagicMock()
    client.get_json.return_value = CONFIGURATION
    api = TmdbApi(client, "key")

    assert api.initialize()
    assert api.poster_size == "w342"
    assert api.backdrop_size == "w780"
    assert api.image_base_url == "https://image.tmdb.org/t/p/"


def test_initialize_failure_disables_client():
    client = MagicMock()
    client.is_alive = True
    client.get_json.return_value = None
    api = TmdbApi(client, "key")

    assert not api.initialize()
    assert api.is_alive is False


def test_search_and_poster():
    client = MagicMock()
    client.get_json.side_effect = [
        CONFIGURATION,
        {"results": [{"id": 949, "title": "Heat", "release_date": "1995-12-15", "poster_path": "/heat.jpg"}]},
    ]
    api = TmdbApi(client, "key")
    api.initialize()

    movies = api.search_catalog("Heat", 1995)

    uri = client.get_json.call_args.args[0]
    assert uri.startswith("search/movie?")
    assert "query=Heat" in uri
    assert "primary_release_year=1995" in uri
    assert "include_adult=false" in uri
    assert movies[0].year == 1995
    assert movies[0].display_title == "Heat (1995)"

    images = api.poster_images(movies[0])
    assert images == [
        {
            "uri": "https://image.tmdb.org/t/p/w342/heat.jpg",
            "aspect": "2x3",
            "category": "Poster Art",
            "size": "Md",
            "width": 342,
            "height": 513,
        }
    ]


def test_search_failure_returns_none():
    client = MagicMock()
    client.get_json.return_value = None
    assert TmdbApi(client, "key").search_catalog("Heat") is None
