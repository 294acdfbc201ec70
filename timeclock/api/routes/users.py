from __future__ import annotations

from fastapi import APIRouter, Depends

from ...db import TimeClockDB
from ..deps import get_db
from ..schemas import UserCreate, UserOut

router = APIRouter(prefix="/api/v1", tags=["users"])


@router.get("/users", response_model=list[UserOut])
def list_users(db: TimeClockDB = Depends(get_db)) -> list[UserOut]:
    return [UserOut.from_model(user) for user in db.list_users()]


@router.post("/users", response_model=UserOut, status_code=201)
def create_user(payload: UserCreate, db: TimeClockDB = Depends(get_db)) -> UserOut:
    return UserOut.from_model(db.add_user(payload.full_name, payload.role))


@router.get("/users/{user_id}", response_model=UserOut)
def get_user(user_id: int, db: TimeClockDB = Depends(get_db)) -> UserOut:
    return UserOut.from_model(db.get_user(user_id))
