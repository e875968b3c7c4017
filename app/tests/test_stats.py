"""
Statistics views.
Covers:
- end-to-end: two friends meet, one walks away, the stats show the session
- live duration of active sessions
- period, current month and month-by-month totals
- duration formatting and hour rounding
"""
from datetime import datetime, timedelta, timezone

import pytest

from app.clock import MonotonicClock
from app.location.schemas import FixStatus, PositionFix
from app.location.services import handle_position_fix
from app.sessions.manager import close_session, open_session
from app.stats.dao import StatsDAO, format_duration, live_duration, month_bounds, to_hours
from app.tests.helpers import PARIS, T0, north_of


async def closed_session(session, user_id, friend_id, started_at, seconds):
    created = await open_session(session, user_id, friend_id, started_at)
    await close_session(session, created, started_at + timedelta(seconds=seconds))
    return created


@pytest.mark.asyncio
async def test_meeting_and_parting(fake_session, limiter, users, befriend):
    """
    Scenario:
    1. alice and bob report the same spot in Paris at t0: a session opens
    2. at t0 + 600 s bob reports a fix ~100 m away: the session closes
    3. alice's stats show 600 s with bob over one session
    """
    alice, bob = users[:2]
    await befriend(alice, bob)

    here = PositionFix(latitude=PARIS[0], longitude=PARIS[1], accuracy=5.0)
    await handle_position_fix(fake_session, limiter, alice.id, here, T0)
    outcome = await handle_position_fix(fake_session, limiter, bob.id, here, T0)
    assert len(outcome.opened_session_ids) == 1

    lat, lon = north_of(PARIS, 100.0)
    away = PositionFix(latitude=lat, longitude=lon, accuracy=5.0)
    outcome = await handle_position_fix(fake_session, limiter, bob.id, away, T0 + timedelta(seconds=600))
    assert outcome.status == FixStatus.ACCEPTED
    assert len(outcome.closed_session_ids) == 1

    stats = await StatsDAO.get_friend_time_stats(fake_session, alice.id, now=T0 + timedelta(seconds=700))

    assert len(stats) == 1
    assert stats[0].friend_id == bob.id
    assert stats[0].username == "bob"
    assert stats[0].total_seconds == 600
    assert stats[0].total_hours == 0.2
    assert stats[0].session_count == 1
    assert stats[0].last_seen == T0 + timedelta(seconds=600)
    assert not stats[0].is_together


@pytest.mark.asyncio
async def test_friend_stats_include_active_session(fake_session, users, befriend):
    alice, bob, carol, dave = users
    for friend in (bob, carol, dave):
        await befriend(alice, friend)
    await closed_session(fake_session, alice.id, carol.id, T0 - timedelta(hours=2), 300)
    await open_session(fake_session, carol.id, alice.id, T0)

    now = T0 + timedelta(seconds=120)
    stats = await StatsDAO.get_friend_time_stats(fake_session, alice.id, now=now)

    assert [s.username for s in stats] == ["carol", "bob", "dave"]
    carol_stats = stats[0]
    assert carol_stats.total_seconds == 420
    assert carol_stats.session_count == 2
    assert carol_stats.is_together
    assert carol_stats.last_seen == now
    assert stats[1].total_seconds == 0 and stats[1].last_seen is None


@pytest.mark.asyncio
async def test_friend_stats_without_friends(fake_session, users):
    assert await StatsDAO.get_friend_time_stats(fake_session, users[0].id, now=T0) == []


@pytest.fixture
def march(fake_session, users):
    """
    alice's sessions around March 2026 (t0 is March 14, 12:00):
    - bob: March 14, 600 s, closed
    - carol: March 10, 5400 s, closed
    - bob: Feb 28 23:30 to March 1 00:30, crosses the month boundary
    - dave: active since March 14, 11:00
    """
    async def _build():
        alice, bob, carol, dave = users
        await closed_session(fake_session, alice.id, bob.id, datetime(2026, 2, 28, 23, 30), 3600)
        await closed_session(fake_session, alice.id, bob.id, T0, 600)
        await closed_session(fake_session, alice.id, carol.id, datetime(2026, 3, 10, 18, 0), 5400)
        await open_session(fake_session, alice.id, dave.id, datetime(2026, 3, 14, 11, 0))
        return users

    return _build


@pytest.mark.asyncio
async def test_period_stats(fake_session, march):
    alice, bob, carol, dave = await march()

    stats = await StatsDAO.get_period_stats(fake_session, alice.id, datetime(2026, 3, 1), datetime(2026, 4, 1), now=T0)

    assert stats.total_seconds == 600 + 5400 + 3600
    assert stats.total_hours == 2.7
    assert stats.friend_count == 3
    assert stats.top_friend_id == carol.id


@pytest.mark.asyncio
async def test_period_excludes_sessions_crossing_its_bounds(fake_session, march):
    alice = (await march())[0]

    stats = await StatsDAO.get_period_stats(fake_session, alice.id, datetime(2026, 2, 1), datetime(2026, 3, 1), now=T0)

    assert stats.total_seconds == 0
    assert stats.friend_count == 0
    assert stats.top_friend_id is None


@pytest.mark.asyncio
async def test_active_session_is_clipped_to_period_end(fake_session, march):
    alice, bob, carol, dave = await march()

    stats = await StatsDAO.get_period_stats(
        fake_session, alice.id, datetime(2026, 3, 14), datetime(2026, 3, 14, 11, 30), now=T0
    )

    assert stats.total_seconds == 1800
    assert stats.top_friend_id == dave.id


@pytest.mark.asyncio
async def test_current_month_stats(fake_session, march):
    alice = (await march())[0]

    stats = await StatsDAO.get_current_month_stats(fake_session, alice.id, now=T0)

    assert stats.start == datetime(2026, 3, 1)
    assert stats.end == datetime(2026, 4, 1)
    assert stats.total_seconds == 9600


@pytest.mark.asyncio
async def test_monthly_stats_with_one_friend(fake_session, march):
    alice, bob, carol, dave = await march()

    months = await StatsDAO.get_monthly_stats(fake_session, alice.id, bob.id, now=T0)

    assert [(m.month, m.total_seconds) for m in months] == [("2026-03", 600), ("2026-02", 3600)]
    assert months[1].total_hours == 1.0

    months = await StatsDAO.get_monthly_stats(fake_session, alice.id, dave.id, now=T0)
    assert [(m.month, m.total_seconds) for m in months] == [("2026-03", 3600)]


@pytest.mark.asyncio
async def test_active_sessions_view(fake_session, users):
    alice, bob = users[:2]
    created = await open_session(fake_session, alice.id, bob.id, T0)

    active = await StatsDAO.get_active_sessions(fake_session, bob.id, now=T0 + timedelta(seconds=5400))

    assert len(active) == 1
    assert active[0].session_id == created.id
    assert active[0].friend_id == alice.id
    assert active[0].live_duration_seconds == 5400
    assert active[0].live_duration == "1h 30min"


def test_live_duration_never_negative():
    assert live_duration(T0, T0 - timedelta(seconds=10)) == 0
    assert live_duration(T0, T0 + timedelta(seconds=61.5)) == 61


@pytest.mark.parametrize("seconds, hours", [(0, 0.0), (180, 0.1), (3420, 1.0), (5400, 1.5), (600, 0.2)])
def test_to_hours_rounds_half_up(seconds, hours):
    assert to_hours(seconds) == hours


@pytest.mark.parametrize("seconds, text", [
    (0, "0s"),
    (45, "45s"),
    (60, "1 min"),
    (3599, "59 min"),
    (3600, "1h"),
    (5400, "1h 30min"),
])
def test_format_duration(seconds, text):
    assert format_duration(seconds) == text


def test_month_bounds():
    assert month_bounds(T0) == (datetime(2026, 3, 1), datetime(2026, 4, 1))
    assert month_bounds(datetime(2026, 12, 31, 23, 59)) == (datetime(2026, 12, 1), datetime(2027, 1, 1))


def test_monotonic_clock_never_goes_back():
    readings = iter([
        T0,
        T0 - timedelta(seconds=5),
        (T0 + timedelta(seconds=5)).replace(tzinfo=timezone.utc),
    ])
    clock = MonotonicClock(source=lambda: next(readings))

    assert clock.now() == T0
    assert clock.now() == T0
    assert clock.now() == T0 + timedelta(seconds=5)
