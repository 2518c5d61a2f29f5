"""
Base model with common fields.
"""
from datetime import datetime

from sqlmodel import SQLModel, Field

from filevault.core.time_utils import utc_now


class BaseModel(SQLModel):
    """
    Base model with timestamp fields shared by all tables.
    """
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
