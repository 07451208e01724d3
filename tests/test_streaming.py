from __future__ import annotations

import pytest

from tradeloop.errors import ClientInputError
from tradeloop.notifier import FUNDING_UPDATE, PRICE_UPDATE
from tradeloop.scheduler import SessionScheduler
from tradeloop.streaming import MarketStreamer


@pytest.fixture
def scheduler(config):
    scheduler = SessionScheduler(config)
    yield scheduler
    scheduler.shutdown()


@pytest.fixture
def streamer(market_data, scheduler):
    return MarketStreamer(market_data, scheduler, interval_seconds=1)


def test_poller_runs_while_pair_has_subscribers(streamer, scheduler):
    job = MarketStreamer.job_id("fake", "BTC")

    assert streamer.subscribe("fake", "BTC") == 1
    assert streamer.subscribe("fake", "BTC") == 2
    assert scheduler.has_job(job)
    assert len(scheduler.get_jobs()) == 1

    assert streamer.unsubscribe("fake", "BTC") == 1
    assert scheduler.has_job(job)

    assert streamer.unsubscribe("fake", "BTC") == 0
    assert not scheduler.has_job(job)
    assert streamer.streams() == []
    assert streamer.unsubscribe("fake", "BTC") == 0


def test_unknown_venue_is_rejected(streamer, scheduler):
    with pytest.raises(ClientInputError):
        streamer.subscribe("nowhere", "BTC")
    assert scheduler.get_jobs() == []


def test_poll_publishes_price_and_funding(streamer, venue, events):
    venue.price = 123.0
    venue.funding = 0.0001

    assert streamer.poll("fake", "BTC") == 123.0

    published = [(e['type'], e['symbol'], e['venue']) for e in events]
    assert (PRICE_UPDATE, "BTC", "fake") in published
    assert (FUNDING_UPDATE, "BTC", "fake") in published


def test_poll_failure_is_logged_not_raised(streamer, venue, events):
    venue.fail_price = True
    assert streamer.poll("fake", "BTC") is None
    assert events == []


def test_close_cancels_every_poller(streamer, scheduler):
    streamer.subscribe("fake", "BTC")
    streamer.subscribe("fake", "ETH")
    streamer.close()
    assert scheduler.get_jobs() == []
    assert streamer.subscribers("fake", "BTC") == 0
