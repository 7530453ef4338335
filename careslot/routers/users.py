# careslot/routers/users.py
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from careslot.db.sql import get_session
from careslot.modules.users import repository as repo
from careslot.modules.users.schemas import UserCreate, UserPublic

router = APIRouter(prefix="/users", tags=["users"])


@router.post(
    "",
    response_model=UserPublic,
    status_code=status.HTTP_201_CREATED,
    summary="Register a patient or doctor",
    responses={409: {"description": "Email already registered"}},
)
async def users_create(
    payload: UserCreate,
    session: AsyncSession = Depends(get_session),
):
    """
    Email is normalized to lowercase. Reminders go out only to users with
    both a phone number and a reminder preference.
    """
    if await repo.get_by_email(session, payload.email) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="email_already_exists")
    try:
        return await repo.create_user(session, payload)
    except repo.EmailAlreadyExistsError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="email_already_exists",
        )


@router.get("/{user_id}", response_model=UserPublic)
async def users_get(user_id: UUID, session: AsyncSession = Depends(get_session)):
    user = await repo.get_by_id(session, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user_not_found")
    return user
