from datetime import datetime
from math import cos, radians
from typing import Iterable

from sqlalchemy import select, and_, or_
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.clock import utcnow
from app.dao.base import BaseDAO
from app.database import bounded_storage_call
from app.friends.models import Friendship, FriendshipStatus
from app.location.distance import haversine_distance, latitude_span
from app.location.models import Position
from app.location.schemas import NearbyFriend

_INSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


def _bounding_box(latitude: float, longitude: float, meters: float) -> list:
    """Cheap pre-filter; the exact haversine check runs afterwards."""
    lat_span = latitude_span(meters) * 1.01
    clauses = [Position.latitude.between(latitude - lat_span, latitude + lat_span)]
    if abs(latitude) + lat_span < 89.0:
        lon_span = lat_span / cos(radians(latitude))
        # skip the longitude filter when the box would cross the antimeridian
        if -180.0 <= longitude - lon_span and longitude + lon_span <= 180.0:
            clauses.append(Position.longitude.between(longitude - lon_span, longitude + lon_span))
    return clauses


class PositionDAO(BaseDAO):
    model = Position

    @staticmethod
    @bounded_storage_call
    async def upsert(
        session: AsyncSession,
        user_id: int,
        latitude: float,
        longitude: float,
        accuracy: float,
        recorded_at: datetime,
    ) -> None:
        dialect = session.get_bind().dialect.name
        insert = _INSERTS.get(dialect)
        if insert is None:
            raise NotImplementedError(f"Position upsert is not supported on {dialect}")

        values = dict(
            user_id=user_id,
            latitude=latitude,
            longitude=longitude,
            accuracy=accuracy,
            recorded_at=recorded_at,
            updated_at=utcnow(),
        )
        stmt = insert(Position).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Position.user_id],
            set_={k: stmt.excluded[k] for k in values if k != "user_id"},
            # a late fix never replaces a newer one
            where=Position.recorded_at <= stmt.excluded.recorded_at,
        )
        try:
            await session.execute(stmt)
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            raise

    @staticmethod
    @bounded_storage_call
    async def get_for_users(session: AsyncSession, user_ids: Iterable[int]) -> dict[int, Position]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        res = await session.execute(select(Position).where(Position.user_id.in_(ids)))
        return {p.user_id: p for p in res.scalars().all()}

    @staticmethod
    @bounded_storage_call
    async def query_nearby(
        session: AsyncSession,
        user_id: int,
        latitude: float,
        longitude: float,
        threshold_meters: float,
    ) -> list[NearbyFriend]:
        """
        Accepted friends of ``user_id`` whose latest position lies within
        ``threshold_meters`` of the given point.

        Staleness is not filtered here: every candidate carries its own
        ``last_position_at`` and the caller decides what is too old.
        """
        pair_match = or_(
            and_(Friendship.user_low == user_id, Friendship.user_high == Position.user_id),
            and_(Friendship.user_high == user_id, Friendship.user_low == Position.user_id),
        )
        q = (
            select(Position)
            .join(Friendship, pair_match)
            .where(Friendship.status == FriendshipStatus.ACCEPTED, *_bounding_box(latitude, longitude, threshold_meters))
        )
        res = await session.execute(q)

        nearby = []
        for position in res.scalars().all():
            distance = haversine_distance(latitude, longitude, position.latitude, position.longitude)
            if distance <= threshold_meters:
                nearby.append(NearbyFriend(
                    friend_id=position.user_id,
                    distance_meters=distance,
                    last_position_at=position.recorded_at,
                ))
        return nearby
