from unittest.mock import MagicMock

import pytest

from sd2epg.utils import CacheManager


@pytest.fixture
def cache(tmp_path):
    return CacheManager(tmp_path / "cache")


@pytest.fixture
def api():
    mock = MagicMock()
    mock.image_base_url = "https://json.schedulesdirect.org/20141201/"
    return mock

