"""Pydantic schemas for Notification endpoints."""

import uuid
from datetime import datetime

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: uuid.UUID
    message: str
    type: str
    link: str | None
    read: bool
    created_at: datetime

    model_config = {"from_attributes": True}
