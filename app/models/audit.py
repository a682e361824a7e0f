"""Audit columns shared by user-editable entities."""
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String


class AuditMixin:
    """created/updated timestamps, principal ids, and an optimistic-lock version.

    ``version`` is the mapper's ``version_id_col``: a flush against a row whose
    version moved on raises ``StaleDataError``.
    """

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    created_by = Column(String(100), nullable=True)
    modified_by = Column(String(100), nullable=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def stamp(self, principal: str | None) -> None:
        if principal is None:
            return
        if self.created_by is None:
            self.created_by = principal
        self.modified_by = principal
