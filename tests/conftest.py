import pytest
from tenacity import wait_none

from factories import build_series
from market_scout.data_sources import yahoo_finance


@pytest.fixture
def rising_series():
    """60 closes from 100 rising by 1.0/day, flat volume 1000."""
    return build_series([100.0 + i for i in range(60)])


@pytest.fixture
def falling_series():
    return build_series([159.0 - i for i in range(60)])


@pytest.fixture
def flat_series():
    return build_series([100.0] * 60)


@pytest.fixture
def no_retry_wait(monkeypatch):
    monkeypatch.setattr(yahoo_finance._fetch_fast_info.retry, "wait", wait_none())
