"""
Pydantic schemas for User-related responses.

hashed_password is never included in any response schema.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr

from vouchify.models.user import UserRole


class UserResponse(BaseModel):
    """Public representation of a User (never includes password hash)."""
    id: uuid.UUID
    email: EmailStr
    display_name: str
    role: UserRole
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
