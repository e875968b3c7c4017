from datetime import datetime

from fastapi import APIRouter, HTTPException, Query

from app.clock import MonotonicClock, as_naive_utc
from app.database import SessionDep
from app.exception import NotFriendsException
from app.friends.dao import FriendDAO
from app.stats.dao import StatsDAO
from app.stats.schemas import FriendTimeStatsOut, MonthlyStatsOut, PeriodStatsOut

router = APIRouter(prefix="/stats", tags=["Stats"])

# one "now" per request, never earlier than the previous request's
render_clock = MonotonicClock()


@router.get("/{user_id}/friends", response_model=list[FriendTimeStatsOut])
async def friend_time_stats(user_id: int, session: SessionDep):
    return await StatsDAO.get_friend_time_stats(session, user_id, now=render_clock.now())


@router.get("/{user_id}/period", response_model=PeriodStatsOut)
async def period_stats(user_id: int, session: SessionDep, start: datetime = Query(...), end: datetime = Query(...)):
    start, end = as_naive_utc(start), as_naive_utc(end)
    if end <= start:
        raise HTTPException(status_code=400, detail="end must be after start")
    return await StatsDAO.get_period_stats(session, user_id, start, end, now=render_clock.now())


@router.get("/{user_id}/month", response_model=PeriodStatsOut)
async def current_month_stats(user_id: int, session: SessionDep):
    return await StatsDAO.get_current_month_stats(session, user_id, now=render_clock.now())


@router.get("/{user_id}/monthly/{friend_id}", response_model=list[MonthlyStatsOut])
async def monthly_stats(user_id: int, friend_id: int, session: SessionDep):
    if user_id == friend_id:
        raise HTTPException(status_code=400, detail="friend_id must differ from user_id")
    if not await FriendDAO.are_friends(session, user_id, friend_id):
        raise NotFriendsException
    return await StatsDAO.get_monthly_stats(session, user_id, friend_id, now=render_clock.now())
