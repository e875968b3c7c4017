import asyncio
from functools import wraps
from typing import Annotated

from fastapi import Depends
from sqlalchemy import Integer
from sqlalchemy.exc import InterfaceError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Mapped, mapped_column, DeclarativeBase
from sqlalchemy.ext.asyncio import AsyncAttrs, async_sessionmaker, create_async_engine, AsyncSession

from app.config import database_url, settings
from app.exception import TransientStorageException


def _engine_options(url: str) -> dict:
    options = {"pool_pre_ping": True}
    if url.startswith("postgresql+asyncpg"):
        options["pool_timeout"] = settings.STORAGE_TIMEOUT_SECONDS
        options["connect_args"] = {"timeout": settings.STORAGE_TIMEOUT_SECONDS}
    return options


engine = create_async_engine(url=database_url, **_engine_options(database_url))
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def connection(method):
    """Opens a session for the wrapped coroutine and passes it as ``session=``."""
    @wraps(method)
    async def wrapper(*args, **kwargs):
        async with async_session_maker() as session:
            try:
                return await method(*args, session=session, **kwargs)
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    return wrapper


def bounded_storage_call(method):
    """
    Bounds a storage coroutine by STORAGE_TIMEOUT_SECONDS.

    Timeouts and connection-level database errors surface as
    TransientStorageException so callers can retry or skip the cycle.
    """
    @wraps(method)
    async def wrapper(*args, **kwargs):
        try:
            return await asyncio.wait_for(method(*args, **kwargs), timeout=settings.STORAGE_TIMEOUT_SECONDS)
        except asyncio.TimeoutError as e:
            raise TransientStorageException(detail=f"{method.__qualname__} timed out") from e
        except (OperationalError, InterfaceError, PoolTimeoutError) as e:
            raise TransientStorageException(detail=f"{method.__qualname__} failed: {e.__class__.__name__}") from e

    return wrapper


async def get_session() -> AsyncSession:
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


SessionDep = Annotated[AsyncSession, Depends(get_session)]


class Base(AsyncAttrs, DeclarativeBase):
    __abstract__ = True

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    def to_dict(self) -> dict:
        return {c.name: getattr(self, c.name) for c in self.__table__.columns}
