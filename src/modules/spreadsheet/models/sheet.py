from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, JSON, UniqueConstraint

from database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class SheetRow(Base):
    __tablename__ = 'sheet_rows'

    id = Column(Integer, primary_key=True)
    sheet = Column(String(64), nullable=False, index=True)
    data = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class SheetCell(Base):
    __tablename__ = 'sheet_cells'
    __table_args__ = (UniqueConstraint('sheet', 'ref', name='uq_sheet_cell'),)

    id = Column(Integer, primary_key=True)
    sheet = Column(String(64), nullable=False)
    ref = Column(String(16), nullable=False)
    value = Column(String(255), nullable=True)
