"""Availability block model definitions."""

from sqlalchemy import Column, Date, Integer, String
from clinic_booking.database import Base


class Availability(Base):
    """A provider-declared window on one date during which appointments may be offered."""
    __tablename__ = "availability_blocks"

    id = Column(Integer, primary_key=True)
    provider_id = Column(String, nullable=False, index=True)
    date = Column(Date, nullable=False)
    start_time = Column(String, nullable=False)  # raw, e.g. "09:00" or "1:30 PM"
    end_time = Column(String, nullable=False)
    deviation_minutes = Column(Integer, default=0)  # +early, -delay
    description = Column(String, nullable=True)
