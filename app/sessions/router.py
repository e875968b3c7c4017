from fastapi import APIRouter

from app.database import SessionDep
from app.sessions.reaper import reap_stale_sessions
from app.stats.dao import StatsDAO
from app.stats.router import render_clock
from app.stats.schemas import ActiveSessionOut

router = APIRouter(prefix="/sessions", tags=["Sessions"])


@router.get("/{user_id}/active", response_model=list[ActiveSessionOut])
async def active_sessions(user_id: int, session: SessionDep):
    return await StatsDAO.get_active_sessions(session, user_id, now=render_clock.now())


@router.post("/reap")
async def reap(session: SessionDep):
    closed = await reap_stale_sessions(session)
    return {"closed": closed}
