"""SQLAlchemy implementation of UserRepositoryProtocol."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from services.scheduler_service.models_db import UserRecord
from services.scheduler_service.protocols import UserRepositoryProtocol


class SQLAlchemyUserRepository(UserRepositoryProtocol):
    async def get_by_id(self, session: AsyncSession, user_id: UUID) -> UserRecord | None:
        return await session.get(UserRecord, user_id)
