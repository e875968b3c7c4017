import asyncio
import logging
import sys
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from loguru import logger
from starlette.middleware.cors import CORSMiddleware

from app.config import settings
from app.friends.router import router as friends_router
from app.location.router import router as location_router
from app.redis_dao.manager import redis_manager
from app.sessions.reaper import run_reaper
from app.sessions.router import router as sessions_router
from app.stats.router import router as stats_router
from app.users.router import router as user_router

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger.remove()
logger.add(sys.stderr, level=settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("FriendTime starting...")
    await redis_manager.connect()
    reaper_task = asyncio.create_task(run_reaper(settings.REAPER_INTERVAL_SECONDS))

    yield

    reaper_task.cancel()
    with suppress(asyncio.CancelledError):
        await reaper_task
    await redis_manager.close()
    logger.info("FriendTime stopped")


app = FastAPI(lifespan=lifespan)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)


app.include_router(user_router)
app.include_router(friends_router)
app.include_router(location_router)
app.include_router(sessions_router)
app.include_router(stats_router)


# uvicorn app.main:app --host 127.0.0.1 --port 8080
