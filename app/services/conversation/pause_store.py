"""
Durable store of human-takeover pauses.

The lazy expiry in ``is_paused`` and ``list_active`` is what decides whether
a user is paused; ``sweep_expired`` only reclaims rows.
"""

import math
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db import async_session_factory
from app.logging import setup_logger
from app.models.pause import PausedUser
from app.services.types import PauseRecord, PauseStatus
from app.utils import utcnow


def minutes_until(resume_at: datetime, now: datetime) -> int:
    """Whole minutes left, rounded up; 0 once the deadline has passed."""
    seconds = (resume_at - now).total_seconds()
    if seconds <= 0:
        return 0
    return math.ceil(seconds / 60)


class PauseStore:
    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.logger = setup_logger(__name__)
        self._session_factory = session_factory or async_session_factory
        self._clock = clock

    async def pause(self, user_id: str, user_name: str, hours: float) -> PauseRecord:
        """
        Pause automation for a user, replacing any existing pause.

        Args:
            user_id: WhatsApp user identifier
            user_name: Display name, kept for the admin listing
            hours: Pause duration counted from now

        Returns:
            The stored pause record
        """
        now = self._clock()
        resume_at = now + timedelta(hours=hours)

        statement = sqlite_insert(PausedUser).values(
            user_id=user_id, user_name=user_name, paused_at=now, resume_at=resume_at
        )
        statement = statement.on_conflict_do_update(
            index_elements=[PausedUser.user_id],
            set_={
                "user_name": statement.excluded.user_name,
                "paused_at": statement.excluded.paused_at,
                "resume_at": statement.excluded.resume_at,
            },
        )

        async with self._session_factory() as db:
            async with db.begin():
                await db.execute(statement)

        self.logger.info(
            f"Paused bot for {user_name} ({user_id}) until {resume_at.isoformat()}"
        )
        return PauseRecord(
            user_id=user_id,
            user_name=user_name,
            paused_at=now,
            resume_at=resume_at,
            minutes_remaining=minutes_until(resume_at, now),
        )

    async def is_paused(self, user_id: str) -> PauseStatus:
        """Check a user's pause, dropping it if it already expired."""
        now = self._clock()

        async with self._session_factory() as db:
            async with db.begin():
                row = await db.get(PausedUser, user_id)
                if row is None:
                    return PauseStatus(paused=False)

                if row.resume_at <= now:
                    await db.delete(row)
                    self.logger.info(f"Pause expired for {row.user_name} ({user_id})")
                    return PauseStatus(paused=False)

                return PauseStatus(
                    paused=True, minutes_remaining=minutes_until(row.resume_at, now)
                )

    async def resume(self, user_id: str) -> bool:
        """Remove an active pause. Returns whether one was removed."""
        now = self._clock()

        async with self._session_factory() as db:
            async with db.begin():
                row = await db.get(PausedUser, user_id)
                if row is None:
                    return False
                # a row past its deadline is already inactive
                was_active = row.resume_at > now
                await db.delete(row)

        if was_active:
            self.logger.info(f"Bot manually resumed for {user_id}")
        return was_active

    async def list_active(self) -> List[PauseRecord]:
        """All unexpired pauses, latest deadline first."""
        now = self._clock()

        async with self._session_factory() as db:
            result = await db.execute(
                select(PausedUser)
                .where(PausedUser.resume_at > now)
                .order_by(PausedUser.resume_at.desc())
            )
            rows = result.scalars().all()

        return [
            PauseRecord(
                user_id=row.user_id,
                user_name=row.user_name,
                paused_at=row.paused_at,
                resume_at=row.resume_at,
                minutes_remaining=minutes_until(row.resume_at, now),
            )
            for row in rows
        ]

    async def count_active(self) -> int:
        now = self._clock()
        async with self._session_factory() as db:
            result = await db.execute(
                select(func.count())
                .select_from(PausedUser)
                .where(PausedUser.resume_at > now)
            )
            return int(result.scalar_one())

    async def sweep_expired(self) -> int:
        """Delete every expired pause and return how many were removed."""
        now = self._clock()

        async with self._session_factory() as db:
            async with db.begin():
                result = await db.execute(
                    delete(PausedUser).where(PausedUser.resume_at <= now)
                )
                removed = result.rowcount or 0

        if removed:
            self.logger.info(f"Removed {removed} expired pause(s)")
        return removed
