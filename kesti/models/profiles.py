# kesti/models/profiles.py

from sqlalchemy import Boolean, Column, String, DateTime
from sqlalchemy.sql import func

from kesti.database import Base


class Profile(Base):
    __tablename__ = "profiles"

    # Same identifier as the tenant's owner_id
    id = Column(String(36), primary_key=True)
    full_name = Column(String, nullable=True)

    subscription_ends_at = Column(DateTime(timezone=True), nullable=True)
    is_suspended = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
