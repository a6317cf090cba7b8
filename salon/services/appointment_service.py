import logging
from datetime import datetime, timedelta

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from salon.models.appointment import Appointment, AppointmentStatus
from salon.utils.time import utcnow

logger = logging.getLogger(__name__)


class AppointmentService:
    def __init__(self, db: AsyncSession, complete_after_hours: int = 24):
        self.db = db
        self.complete_after = timedelta(hours=complete_after_hours)

    async def process_pending_completions(self, now: datetime | None = None) -> dict:
        """
        Mark confirmed appointments as completed once their confirmation is old enough.

        Selection and update happen in a single UPDATE statement so
        overlapping runs cannot complete the same appointment twice.
        """
        now = now or utcnow()
        cutoff = now - self.complete_after

        result = await self.db.execute(
            update(Appointment)
            .where(
                Appointment.status == AppointmentStatus.confirmed.value,
                Appointment.confirmed_at.is_not(None),
                Appointment.confirmed_at <= cutoff,
            )
            .values(status=AppointmentStatus.completed.value, completed_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        completed = result.rowcount or 0
        logger.info(f"Auto-completion marked {completed} appointment(s) as completed")
        return {"success": True, "completed_count": completed, "cutoff": cutoff.isoformat()}
