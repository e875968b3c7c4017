from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.exception import (
    AlreadyFriendsException, CannotFriendYourselfException, FriendRequestNotFoundException,
    FriendRequestPendingException, NotRequestRecipientException, UserNotFoundException,
)
from app.friends.dao import FriendDAO
from app.friends.models import Friendship, FriendshipStatus
from app.users.dao import UserDAO


async def send_friend_request(session: AsyncSession, requester_id: int, recipient_id: int) -> Friendship:
    """
    Creates a pending request from ``requester_id`` to ``recipient_id``.

    Only one row may exist per pair: an accepted or pending row blocks the
    request, a rejected row is reused as a fresh pending request.
    """
    if requester_id == recipient_id:
        raise CannotFriendYourselfException

    for user_id in (requester_id, recipient_id):
        if not await UserDAO.find_one_or_none_by_id(session, user_id):
            raise UserNotFoundException(detail=f"User {user_id} not found")

    existing = await FriendDAO.find_for_pair(session, requester_id, recipient_id)
    if existing:
        if existing.status == FriendshipStatus.ACCEPTED:
            raise AlreadyFriendsException
        if existing.status == FriendshipStatus.PENDING:
            raise FriendRequestPendingException
        logger.info(f"[FRIENDS] Renewing rejected request {existing.id}: {requester_id} -> {recipient_id}")
        return await FriendDAO.renew_request(session, existing, requester_id)

    friendship = await FriendDAO.create_request(session, requester_id, recipient_id)
    logger.info(f"[FRIENDS] Request {friendship.id}: {requester_id} -> {recipient_id}")
    return friendship


async def _pending_request_for_recipient(session: AsyncSession, friendship_id: int, user_id: int) -> Friendship:
    friendship = await FriendDAO.find_one_or_none_by_id(session, friendship_id)
    if not friendship or friendship.status != FriendshipStatus.PENDING:
        raise FriendRequestNotFoundException
    if friendship.recipient_id != user_id:
        raise NotRequestRecipientException
    return friendship


async def accept_friend_request(session: AsyncSession, friendship_id: int, user_id: int) -> Friendship:
    friendship = await _pending_request_for_recipient(session, friendship_id, user_id)
    friendship = await FriendDAO.set_status(session, friendship, FriendshipStatus.ACCEPTED)
    logger.info(f"[FRIENDS] {user_id} accepted request {friendship_id}")
    return friendship


async def reject_friend_request(session: AsyncSession, friendship_id: int, user_id: int) -> Friendship:
    friendship = await _pending_request_for_recipient(session, friendship_id, user_id)
    friendship = await FriendDAO.set_status(session, friendship, FriendshipStatus.REJECTED)
    logger.info(f"[FRIENDS] {user_id} rejected request {friendship_id}")
    return friendship


async def remove_friend(session: AsyncSession, friendship_id: int, user_id: int) -> None:
    """Hard delete. Either member of the pair may remove the friendship."""
    friendship = await FriendDAO.find_one_or_none_by_id(session, friendship_id)
    if not friendship or user_id not in friendship.pair:
        raise FriendRequestNotFoundException
    await FriendDAO.delete(session, id=friendship_id)
    logger.info(f"[FRIENDS] {user_id} removed friendship {friendship_id}")
