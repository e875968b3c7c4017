from typing import Optional

from sqlalchemy import select, case, or_, and_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.clock import utcnow
from app.dao.base import BaseDAO
from app.database import bounded_storage_call
from app.exception import FriendRequestPendingException
from app.friends.models import Friendship, FriendshipStatus
from app.pairs import normalize_pair
from app.users.models import User


def friend_of(user_id: int):
    """SQL expression yielding the other member of a friendship row."""
    return case((Friendship.user_low == user_id, Friendship.user_high), else_=Friendship.user_low)


def involves(user_id: int):
    return or_(Friendship.user_low == user_id, Friendship.user_high == user_id)


class FriendDAO(BaseDAO):
    model = Friendship

    @staticmethod
    @bounded_storage_call
    async def find_for_pair(session: AsyncSession, user_id: int, other_id: int) -> Optional[Friendship]:
        """Looks the pair up in both orderings through the normalized key."""
        low, high = normalize_pair(user_id, other_id)
        q = select(Friendship).where(Friendship.user_low == low, Friendship.user_high == high)
        res = await session.execute(q)
        return res.scalar_one_or_none()

    @staticmethod
    @bounded_storage_call
    async def create_request(session: AsyncSession, requester_id: int, recipient_id: int) -> Friendship:
        low, high = normalize_pair(requester_id, recipient_id)
        friendship = Friendship(
            requester_id=requester_id,
            recipient_id=recipient_id,
            user_low=low,
            user_high=high,
            status=FriendshipStatus.PENDING,
        )
        session.add(friendship)
        try:
            await session.commit()
        except IntegrityError:
            # the other side created the row for this pair first
            await session.rollback()
            raise FriendRequestPendingException
        except SQLAlchemyError:
            await session.rollback()
            raise
        await session.refresh(friendship)
        return friendship

    @staticmethod
    @bounded_storage_call
    async def renew_request(session: AsyncSession, friendship: Friendship, requester_id: int) -> Friendship:
        """Turns a rejected row back into a pending request from ``requester_id``."""
        friendship.requester_id = requester_id
        friendship.recipient_id = friendship.user_high if requester_id == friendship.user_low else friendship.user_low
        friendship.status = FriendshipStatus.PENDING
        friendship.updated_at = utcnow()
        try:
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            raise
        return friendship

    @staticmethod
    @bounded_storage_call
    async def set_status(session: AsyncSession, friendship: Friendship, status: FriendshipStatus) -> Friendship:
        friendship.status = status
        friendship.updated_at = utcnow()
        try:
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            raise
        return friendship

    @staticmethod
    @bounded_storage_call
    async def get_accepted_friend_ids(session: AsyncSession, user_id: int) -> list[int]:
        q = select(friend_of(user_id)).where(involves(user_id), Friendship.status == FriendshipStatus.ACCEPTED)
        res = await session.execute(q)
        return [row[0] for row in res.all()]

    @staticmethod
    @bounded_storage_call
    async def get_friends(session: AsyncSession, user_id: int) -> list[tuple[Friendship, User]]:
        """Accepted friendships of ``user_id`` joined with the friend's user row."""
        friend_id = friend_of(user_id)
        q = (
            select(Friendship, User)
            .join(User, User.id == friend_id)
            .where(involves(user_id), Friendship.status == FriendshipStatus.ACCEPTED)
            .order_by(User.username)
        )
        res = await session.execute(q)
        return [(row[0], row[1]) for row in res.all()]

    @staticmethod
    @bounded_storage_call
    async def get_pending_requests(session: AsyncSession, user_id: int) -> list[Friendship]:
        """Requests received by ``user_id`` and still waiting for an answer."""
        q = (
            select(Friendship)
            .options(selectinload(Friendship.requester))
            .where(Friendship.recipient_id == user_id, Friendship.status == FriendshipStatus.PENDING)
            .order_by(Friendship.created_at.desc())
        )
        res = await session.execute(q)
        return list(res.scalars().all())

    @staticmethod
    @bounded_storage_call
    async def are_friends(session: AsyncSession, user_id: int, other_id: int) -> bool:
        low, high = normalize_pair(user_id, other_id)
        q = select(Friendship.id).where(
            and_(Friendship.user_low == low, Friendship.user_high == high),
            Friendship.status == FriendshipStatus.ACCEPTED,
        )
        res = await session.execute(q)
        return res.scalar_one_or_none() is not None
