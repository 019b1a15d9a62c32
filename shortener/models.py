import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String

from shortener.database import Base


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Link(Base):
    __tablename__ = "links"

    id = Column(String(32), primary_key=True, default=_new_id)
    original_url = Column(String(2048), nullable=False, index=True)
    short_code = Column(String(30), unique=True, index=True, nullable=False)
    visits = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
