"""
Proximity resolver.
Covers:
- split of nearby friends by enter and exit thresholds
- stale friends count as out of range
- only accepted friends are candidates
- antimeridian neighbours
"""
from datetime import timedelta

import pytest

from app.friends.models import FriendshipStatus
from app.location.dao import PositionDAO
from app.location.proximity import is_stale, partition_nearby, resolve_proximity
from app.location.schemas import NearbyFriend
from app.tests.helpers import PARIS, T0, north_of


@pytest.mark.asyncio
async def test_friends_are_split_by_thresholds(fake_session, users, befriend, place):
    """
    alice at PARIS, her friends around her:
    - bob 30 m away: can open and keep a session
    - carol 55 m away: can only keep one
    - dave 70 m away: out of range
    """
    alice, bob, carol, dave = users
    for friend in (bob, carol, dave):
        await befriend(alice, friend)

    await place(alice, PARIS, T0)
    await place(bob, north_of(PARIS, 30.0), T0)
    await place(carol, north_of(PARIS, 55.0), T0)
    await place(dave, north_of(PARIS, 70.0), T0)

    resolution = await resolve_proximity(
        fake_session, alice.id, *PARIS, T0 + timedelta(seconds=10),
        enter_threshold_m=50.0, exit_threshold_m=60.0, stale_after_seconds=180,
    )

    assert set(resolution.within_enter) == {bob.id}
    assert set(resolution.within_exit) == {bob.id, carol.id}
    assert resolution.within_enter[bob.id] == pytest.approx(30.0, rel=1e-3)
    assert resolution.can_open(bob.id) and resolution.keeps_open(bob.id)
    assert not resolution.can_open(carol.id) and resolution.keeps_open(carol.id)
    assert not resolution.keeps_open(dave.id)


@pytest.mark.asyncio
async def test_stale_friend_is_out_of_range(fake_session, users, befriend, place):
    alice, bob = users[:2]
    await befriend(alice, bob)
    await place(bob, north_of(PARIS, 10.0), T0 - timedelta(minutes=4))

    resolution = await resolve_proximity(fake_session, alice.id, *PARIS, T0, stale_after_seconds=180)

    assert resolution.within_enter == {}
    assert resolution.within_exit == {}


@pytest.mark.asyncio
async def test_only_accepted_friends_are_candidates(fake_session, users, befriend, place):
    alice, bob, carol, dave = users
    await befriend(alice, bob, FriendshipStatus.PENDING)
    await befriend(carol, alice, FriendshipStatus.REJECTED)
    await befriend(dave, alice)  # accepted, requested by dave
    for user in (bob, carol, dave):
        await place(user, north_of(PARIS, 5.0), T0)

    resolution = await resolve_proximity(fake_session, alice.id, *PARIS, T0)

    assert set(resolution.within_enter) == {dave.id}


@pytest.mark.asyncio
async def test_own_position_is_not_a_candidate(fake_session, users, befriend, place):
    alice, bob = users[:2]
    await befriend(alice, bob)
    await place(alice, PARIS, T0)

    nearby = await PositionDAO.query_nearby(fake_session, alice.id, *PARIS, 60.0)
    assert nearby == []


@pytest.mark.asyncio
async def test_nearby_query_across_antimeridian(fake_session, users, befriend, place):
    alice, bob = users[:2]
    await befriend(alice, bob)
    await place(bob, (0.0, -179.9999), T0)

    nearby = await PositionDAO.query_nearby(fake_session, alice.id, 0.0, 179.9999, 50.0)

    assert [n.friend_id for n in nearby] == [bob.id]
    assert nearby[0].last_position_at == T0


def test_partition_rejects_exit_below_enter():
    with pytest.raises(ValueError):
        partition_nearby(1, [], T0, enter_threshold_m=60.0, exit_threshold_m=50.0, stale_after_seconds=180)


def test_partition_boundaries_are_inclusive():
    candidates = [
        NearbyFriend(friend_id=2, distance_meters=50.0, last_position_at=T0),
        NearbyFriend(friend_id=3, distance_meters=60.0, last_position_at=T0),
    ]
    resolution = partition_nearby(1, candidates, T0, 50.0, 60.0, 180)
    assert set(resolution.within_enter) == {2}
    assert set(resolution.within_exit) == {2, 3}


def test_is_stale():
    assert not is_stale(T0, T0 + timedelta(seconds=180), 180)
    assert is_stale(T0, T0 + timedelta(seconds=181), 180)
