# backend/booking_engine/repositories/schedule_repository.py
"""Provider schedule storage."""

from typing import Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..models.provider_schedule import ProviderSchedule
from ..schemas.schedule import CancellationPolicy, ScheduleConfig, SessionPrices
from .base_repository import BaseRepository


def default_policy() -> CancellationPolicy:
    return CancellationPolicy(
        cancellation_hours=settings.default_cancellation_hours,
        rescheduling_hours=settings.default_rescheduling_hours,
        advance_booking_days=settings.default_advance_booking_days,
        buffer_minutes=settings.default_buffer_minutes,
        step_minutes=settings.default_step_minutes,
        session_duration_minutes=settings.default_session_duration_minutes,
    )


def default_prices() -> SessionPrices:
    return SessionPrices(
        initial=settings.default_price_initial,
        follow_up=settings.default_price_follow_up,
        online=settings.default_price_online,
    )


class ScheduleRepository(BaseRepository[ProviderSchedule]):
    def __init__(self, db: Session):
        super().__init__(db, ProviderSchedule)

    def get_config(self, provider_id: str) -> Optional[ScheduleConfig]:
        """
        The provider's ScheduleConfig, or None when no row exists.

        Missing policy, price or modality values fall back to the configured
        defaults.
        """
        row = self.get_by_id(provider_id)
        if row is None:
            return None
        return ScheduleConfig(
            provider_id=row.provider_id,
            weekly_schedule=row.weekly_schedule or {},
            exceptions=row.exceptions or [],
            policy=row.policy if row.policy is not None else default_policy(),
            prices=row.prices if row.prices is not None else default_prices(),
            default_modality=row.default_modality or settings.default_modality,
        )

    def save_config(self, config: ScheduleConfig) -> ProviderSchedule:
        """Insert or replace the stored documents for ``config.provider_id``."""
        document = config.model_dump(mode="json")
        row = self.get_by_id(config.provider_id)
        if row is None:
            return self.create(
                provider_id=config.provider_id,
                weekly_schedule=document["weekly_schedule"],
                exceptions=document["exceptions"],
                policy=document["policy"],
                prices=document["prices"],
                default_modality=document["default_modality"],
            )
        row.weekly_schedule = document["weekly_schedule"]
        row.exceptions = document["exceptions"]
        row.policy = document["policy"]
        row.prices = document["prices"]
        row.default_modality = document["default_modality"]
        self.flush()
        return row
