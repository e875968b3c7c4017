from fastapi import APIRouter, Query

from app.database import SessionDep
from app.friends import services
from app.friends.dao import FriendDAO
from app.friends.schemas import FriendOut, FriendRequestCreate, FriendshipOut, PendingRequestOut, UserRef

router = APIRouter(prefix="/friends", tags=["Friends"])


@router.post("/request", response_model=FriendshipOut, status_code=201)
async def send_request(req: FriendRequestCreate, session: SessionDep):
    friendship = await services.send_friend_request(session, req.requester_id, req.recipient_id)
    return FriendshipOut.model_validate(friendship)


@router.post("/{friendship_id}/accept", response_model=FriendshipOut)
async def accept_request(friendship_id: int, session: SessionDep, user_id: int = Query(...)):
    friendship = await services.accept_friend_request(session, friendship_id, user_id)
    return FriendshipOut.model_validate(friendship)


@router.post("/{friendship_id}/reject", response_model=FriendshipOut)
async def reject_request(friendship_id: int, session: SessionDep, user_id: int = Query(...)):
    friendship = await services.reject_friend_request(session, friendship_id, user_id)
    return FriendshipOut.model_validate(friendship)


@router.delete("/{friendship_id}")
async def remove_friend(friendship_id: int, session: SessionDep, user_id: int = Query(...)):
    await services.remove_friend(session, friendship_id, user_id)
    return {"ok": True}


@router.get("/{user_id}", response_model=list[FriendOut])
async def get_friends(user_id: int, session: SessionDep):
    rows = await FriendDAO.get_friends(session, user_id)
    return [
        FriendOut(
            friendship_id=friendship.id,
            friend=UserRef.model_validate(friend),
            since=friendship.updated_at or friendship.created_at,
        )
        for friendship, friend in rows
    ]


@router.get("/{user_id}/pending", response_model=list[PendingRequestOut])
async def get_pending(user_id: int, session: SessionDep):
    requests = await FriendDAO.get_pending_requests(session, user_id)
    return [PendingRequestOut.model_validate(r) for r in requests]
