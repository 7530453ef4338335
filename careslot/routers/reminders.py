# careslot/routers/reminders.py
from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from careslot.dependencies import get_reminders
from careslot.modules.reminders.schemas import ReminderCreate, ReminderPublic
from careslot.modules.reminders.scheduler import OutboxReminderScheduler, ReminderError

router = APIRouter(prefix="/reminders", tags=["reminders"])


@router.post(
    "/schedule",
    response_model=ReminderPublic,
    status_code=status.HTTP_201_CREATED,
    summary="Schedule a general, medication or appointment reminder",
)
async def reminders_schedule(
    payload: ReminderCreate,
    reminders: OutboxReminderScheduler = Depends(get_reminders),
):
    """
    The reminder is queued as pending; the dispatcher sends it when due.
    """
    try:
        return await reminders.create_reminder(payload)
    except ReminderError as e:
        if str(e) == "phone_missing":
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="phone_missing",
            )
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get(
    "/user/{user_id}",
    response_model=List[ReminderPublic],
    summary="Reminders of one user, latest first",
)
async def reminders_for_user(
    user_id: UUID,
    reminders: OutboxReminderScheduler = Depends(get_reminders),
):
    return await reminders.list_for_user(user_id)
