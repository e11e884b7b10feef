from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db import async_session_factory
from app.logging import setup_logger
from app.models.intake import Intake
from app.services.types import IntakeRecord


class IntakeRepository:
    """Stores finished intakes in the ``intakes`` table."""

    def __init__(
        self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    ):
        self.logger = setup_logger(__name__)
        self._session_factory = session_factory or async_session_factory

    async def save_intake(self, record: IntakeRecord) -> int:
        """
        Persist an intake record.

        Args:
            record: The finished request

        Returns:
            The id of the new row
        """
        async with self._session_factory() as db:
            row = Intake(**record.model_dump())
            db.add(row)
            await db.commit()
            self.logger.info(
                f"Saved intake {row.id} for {record.phone} ({record.service})"
            )
            return row.id

    async def list_intakes(
        self,
        status: Optional[str] = None,
        phone: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Intake]:
        """Most recent intakes first, optionally filtered by status or phone."""
        statement = select(Intake)
        if status:
            statement = statement.where(Intake.status == status)
        if phone:
            statement = statement.where(Intake.phone == phone)
        statement = (
            statement.order_by(Intake.created_at.desc(), Intake.id.desc())
            .offset(offset)
            .limit(limit)
        )

        async with self._session_factory() as db:
            result = await db.execute(statement)
            return list(result.scalars().all())

    async def count_intakes(self, status: Optional[str] = None) -> int:
        statement = select(func.count()).select_from(Intake)
        if status:
            statement = statement.where(Intake.status == status)
        async with self._session_factory() as db:
            return (await db.execute(statement)).scalar_one()
