from __future__ import annotations

import random
from datetime import datetime, timezone
from pathlib import Path

import pytest

from db import build_engine, init_db, make_session_factory
from refresh import Refresher

FIXED_NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def naive(ts: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return ts.replace(tzinfo=None)


@pytest.fixture
def engine(tmp_path: Path):
    eng = build_engine(f"sqlite:///{(tmp_path / 'countries.db').as_posix()}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def summary_path(tmp_path: Path) -> str:
    return str(tmp_path / "cache" / "summary.png")


def fake_fetch(payload):
    def _fetch():
        return True, payload

    return _fetch


def failing_fetch(cause):
    def _fetch():
        return False, cause

    return _fetch


@pytest.fixture
def make_refresher(session_factory, summary_path):
    def _make(countries, rates, **kwargs):
        kwargs.setdefault("rng", random.Random(7))
        kwargs.setdefault("clock", lambda: FIXED_NOW)
        return Refresher(
            session_factory=session_factory,
            summary_path=summary_path,
            fetch_countries=countries if callable(countries) else fake_fetch(countries),
            fetch_rates=rates if callable(rates) else fake_fetch(rates),
            **kwargs,
        )

    return _make
