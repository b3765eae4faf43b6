from __future__ import annotations
import datetime as dt
from sqlalchemy import Integer, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column
from .db import Base

UTC = dt.timezone.utc
def utcnow() -> dt.datetime:
    return dt.datetime.now(tz=UTC)

class Credential(Base):
    __tablename__ = "credentials"
    tg_user_id: Mapped[int] = mapped_column(Integer, primary_key=True)  # tg user id
    api_key: Mapped[str] = mapped_column(Text)  # never logged
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=True)
