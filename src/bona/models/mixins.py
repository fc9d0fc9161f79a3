"""
Mixins for SQLAlchemy models.
Provides reusable column sets for record provenance and timestamps.
"""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func

from bona.utils.datetime_utils import utc_now


class AuditMixin:
    """
    Adds provenance columns to any mutable model.

    Provides:
    - created_at: UTC timestamp when record is created
    - updated_at: UTC timestamp when record is modified
    - created_by_user_id: user_id of creator
    - updated_by_user_id: user_id of last updater

    Usage:
        class MyModel(Base, AuditMixin):
            __tablename__ = "my_table"
            id = Column(UUID, primary_key=True)
            # created_at, updated_at, etc. are inherited automatically
    """

    created_at = Column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        nullable=False,
        comment="UTC timestamp when record was created"
    )

    updated_at = Column(
        DateTime(timezone=True),
        onupdate=utc_now,
        comment="UTC timestamp when record was last updated"
    )

    created_by_user_id = Column(
        String(255),
        comment="user_id of user who created this record"
    )

    updated_by_user_id = Column(
        String(255),
        comment="user_id of user who last updated this record"
    )
