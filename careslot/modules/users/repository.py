# careslot/modules/users/repository.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from careslot.modules.users.models import User
from careslot.modules.users.schemas import UserCreate


class EmailAlreadyExistsError(Exception):
    """Raised when trying to insert a user with an email that already exists."""


async def get_by_id(session: AsyncSession, user_id: UUID) -> Optional[User]:
    """
    Returns a User by primary key or None if not found.
    """
    return await session.get(User, user_id)


async def get_by_email(session: AsyncSession, email: str) -> Optional[User]:
    email = email.strip().lower()
    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def create_user(session: AsyncSession, payload: UserCreate) -> User:
    """
    Inserts a new user row and returns the persisted ORM instance.
    Email uniqueness violations surface as EmailAlreadyExistsError.
    """
    user = User(
        email=payload.email,
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone=payload.phone,
        role=payload.role.value,
        reminder_preference=(
            payload.reminder_preference.value if payload.reminder_preference else None
        ),
    )

    session.add(user)
    try:
        # Flush to force INSERT and surface constraint violations here
        await session.flush()
    except IntegrityError as exc:
        raise EmailAlreadyExistsError("email_already_exists") from exc

    await session.refresh(user)
    return user
