# backend/booking_engine/schemas/api.py
"""Request bodies of the HTTP API. Sessions travel in full with every call."""

import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..core.enums import SessionModality
from .booking import BookingSession, PatientForm


class SessionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    session: BookingSession


class StartSessionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    idempotency_key: Optional[str] = Field(default=None, max_length=64)


class SelectDateRequest(SessionRequest):
    date: datetime.date


class SelectSlotRequest(SessionRequest):
    slot_id: str = Field(..., min_length=1)


class ChangeModalityRequest(SessionRequest):
    modality: SessionModality


class PatientFormRequest(SessionRequest):
    form: PatientForm


class ConfirmRequest(SessionRequest):
    idempotency_key: Optional[str] = Field(default=None, max_length=64)


class RescheduleRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    date: datetime.date
    time: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    idempotency_key: str = Field(..., min_length=1, max_length=64)
