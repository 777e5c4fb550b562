from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select

from .contracts import EstablishmentRegistration
from .db.core import get_session, init_db
from .db.models import EstablishmentRegistrationRecord

logger = logging.getLogger(__name__)


class RegistrationStore:
    """
    Pending establishment registrations.

    Reference catalogs stay in the JSON seed; only user submissions are written to SQL,
    so several workers share one moderation queue.
    """

    async def create(self, registration: EstablishmentRegistration) -> dict[str, Any]:
        await init_db()
        fields = registration.model_dump()
        async with get_session() as session:
            record = EstablishmentRegistrationRecord(
                status="pending",
                payload=registration.model_dump(mode="json", by_alias=True),
                **fields,
            )
            session.add(record)
            await session.commit()
            await session.refresh(record)
            logger.info(
                "Registration %s stored for city %s (pending validation)",
                record.id,
                record.city_id,
            )
            return record.to_dict()

    async def get(self, registration_id: str) -> dict[str, Any] | None:
        await init_db()
        async with get_session() as session:
            record = await session.get(EstablishmentRegistrationRecord, registration_id)
            return record.to_dict() if record else None

    async def list_registrations(
        self, *, status: str | None = None, city_id: int | None = None
    ) -> list[dict[str, Any]]:
        await init_db()
        stmt = select(EstablishmentRegistrationRecord).order_by(
            EstablishmentRegistrationRecord.created_at
        )
        if status:
            stmt = stmt.where(EstablishmentRegistrationRecord.status == status)
        if city_id is not None:
            stmt = stmt.where(EstablishmentRegistrationRecord.city_id == city_id)
        async with get_session() as session:
            result = await session.execute(stmt)
            return [record.to_dict() for record in result.scalars().all()]


REGISTRATIONS = RegistrationStore()
