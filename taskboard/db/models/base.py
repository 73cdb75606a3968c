import uuid
from sqlalchemy import Column, DateTime, Uuid
from taskboard.db.database import Base
from taskboard.utils.helpers import utc_now


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps, maintained on write"""
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)


class UUIDMixin:
    """Mixin for an opaque UUID primary key"""
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
