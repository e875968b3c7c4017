from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.base import BaseDAO
from app.database import bounded_storage_call
from app.exception import UserAlreadyExistsException
from app.users.models import User


class UserDAO(BaseDAO):
    model = User

    @classmethod
    @bounded_storage_call
    async def create(cls, session: AsyncSession, username: str, name: Optional[str] = None) -> User:
        user = cls.model(username=username, name=name)
        session.add(user)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            raise UserAlreadyExistsException
        await session.refresh(user)
        return user

    @classmethod
    @bounded_storage_call
    async def find_by_username(cls, session: AsyncSession, username: str) -> Optional[User]:
        """Case-insensitive lookup."""
        q = select(cls.model).where(func.lower(cls.model.username) == username.lower())
        res = await session.execute(q)
        return res.scalar_one_or_none()
