from fastapi import APIRouter, Depends, Query

from app.clock import utcnow
from app.config import settings
from app.database import SessionDep
from app.exception import UserNotFoundException
from app.location.dao import PositionDAO
from app.location.ingest import validate_fix
from app.location.proximity import is_stale
from app.location.rate_limit import FixRateLimiter
from app.location.schemas import FixOutcome, NearbyFriend, PositionFix
from app.location.services import handle_position_fix, stop_tracking
from app.redis_dao.custom_redis import CustomRedis
from app.redis_dao.manager import get_redis
from app.users.dao import UserDAO

router = APIRouter(prefix="/location", tags=["Location"])


def get_rate_limiter(redis: CustomRedis = Depends(get_redis)) -> FixRateLimiter:
    return FixRateLimiter(redis)


@router.post("/{user_id}/fix", response_model=FixOutcome)
async def report_fix(
    user_id: int,
    fix: PositionFix,
    session: SessionDep,
    limiter: FixRateLimiter = Depends(get_rate_limiter),
):
    if not await UserDAO.find_one_or_none_by_id(session, user_id):
        raise UserNotFoundException
    return await handle_position_fix(session, limiter, user_id, fix)


@router.post("/{user_id}/stop")
async def stop(user_id: int, limiter: FixRateLimiter = Depends(get_rate_limiter)):
    await stop_tracking(limiter, user_id)
    return {"ok": True}


@router.get("/{user_id}/nearby", response_model=list[NearbyFriend])
async def nearby_friends(
    user_id: int,
    session: SessionDep,
    latitude: float = Query(...),
    longitude: float = Query(...),
    threshold: float = Query(settings.PROXIMITY_ENTER_METERS, gt=0),
):
    validate_fix(PositionFix(latitude=latitude, longitude=longitude))
    now = utcnow()
    friends = await PositionDAO.query_nearby(session, user_id, latitude, longitude, threshold)
    fresh = [f for f in friends if not is_stale(f.last_position_at, now)]
    return sorted(fresh, key=lambda f: f.distance_meters)
