from fastapi import APIRouter, Query

from app.database import SessionDep
from app.exception import UserNotFoundException
from app.users.dao import UserDAO
from app.users.schemas import UserCreate, UserOut

router = APIRouter(prefix="/users", tags=["User"])


@router.post("/add_user", response_model=UserOut, status_code=201)
async def user_add(user: UserCreate, session: SessionDep):
    created = await UserDAO.create(session, username=user.username, name=user.name)
    return UserOut.model_validate(created)


@router.get("/search", response_model=UserOut)
async def search_user(session: SessionDep, username: str = Query(..., min_length=1)):
    user = await UserDAO.find_by_username(session, username)
    if not user:
        raise UserNotFoundException
    return UserOut.model_validate(user)


@router.get("/{user_id}", response_model=UserOut)
async def get_user(user_id: int, session: SessionDep):
    user = await UserDAO.find_one_or_none_by_id(session, user_id)
    if not user:
        raise UserNotFoundException
    return UserOut.model_validate(user)
