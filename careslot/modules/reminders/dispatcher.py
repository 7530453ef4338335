# careslot/modules/reminders/dispatcher.py
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from careslot.core.config import settings
from careslot.core.dates import utc_now
from careslot.modules.reminders.models import Reminder, ReminderStatus
from careslot.modules.users.models import User

logger = logging.getLogger(__name__)


class ReminderChannel(Protocol):
    """Delivery backend (SMS, voice call, ...). Raise on failure."""

    async def send(self, reminder: Reminder, recipient: Optional[User]) -> None: ...


class LoggingChannel:
    """
    Stand-in channel: real SMS/voice delivery lives outside this service.
    """

    async def send(self, reminder: Reminder, recipient: Optional[User]) -> None:
        if recipient is None or not recipient.phone:
            raise RuntimeError("recipient_phone_missing")
        logger.info(
            "Reminder %s via %s to %s: %s",
            reminder.id, reminder.contact_method, recipient.phone, reminder.message,
        )


class ReminderDispatcher:
    """
    Drains due reminders from the outbox.

    Delivery is at-least-once: a reminder is marked sent only after the
    channel returns, so a crash in between sends it again on the next pass.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        channel: Optional[ReminderChannel] = None,
        *,
        batch_size: Optional[int] = None,
        max_attempts: Optional[int] = None,
    ):
        self._session_factory = session_factory
        self.channel = channel or LoggingChannel()
        self.batch_size = batch_size or settings.REMINDER_BATCH_SIZE
        self.max_attempts = max_attempts or settings.REMINDER_MAX_ATTEMPTS

    async def dispatch_due(self, now: Optional[datetime] = None) -> int:
        """
        Send every pending reminder due at `now` (one batch).
        Returns how many were delivered.
        """
        now = now or utc_now()
        sent = 0

        async with self._session_factory() as session:
            async with session.begin():
                rows = await session.execute(
                    select(Reminder)
                    .where(
                        Reminder.status == ReminderStatus.PENDING.value,
                        Reminder.scheduled_time <= now,
                    )
                    .order_by(Reminder.scheduled_time)
                    .limit(self.batch_size)
                    .with_for_update(skip_locked=True)
                )
                for reminder in rows.scalars().all():
                    recipient = await session.get(User, reminder.user_id)
                    reminder.attempts += 1
                    try:
                        await self.channel.send(reminder, recipient)
                    except Exception as exc:
                        reminder.last_error = str(exc) or type(exc).__name__
                        if reminder.attempts >= self.max_attempts:
                            reminder.status = ReminderStatus.FAILED.value
                        logger.warning(
                            "Reminder %s delivery failed (attempt %d/%d): %s",
                            reminder.id, reminder.attempts, self.max_attempts, exc,
                        )
                        continue
                    reminder.status = ReminderStatus.SENT.value
                    reminder.last_error = None
                    sent += 1

        if sent:
            logger.info("Reminder dispatch: delivered %d reminder(s)", sent)
        return sent

    async def run_forever(self, interval_seconds: Optional[int] = None) -> None:
        interval = interval_seconds or settings.REMINDER_POLL_SECONDS
        while True:
            try:
                await self.dispatch_due()
            except Exception as e:
                logger.exception("Reminder dispatch failed: %s", e)
            await asyncio.sleep(interval)
