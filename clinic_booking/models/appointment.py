"""Appointment model definitions."""

from sqlalchemy import Column, Date, DateTime, Integer, String, UniqueConstraint, func
from clinic_booking.database import Base


class Appointment(Base):
    """Represents a booked appointment with a provider."""
    __tablename__ = "appointments"
    __table_args__ = (
        UniqueConstraint('provider_id', 'appointment_date', 'appointment_time', name='uniq_provider_datetime'),
    )

    id = Column(Integer, primary_key=True)
    provider_id = Column(String, nullable=False, index=True)
    patient_id = Column(String, nullable=False)
    patient_name = Column(String, nullable=False)
    appointment_date = Column(Date, nullable=False)
    appointment_time = Column(String(5), nullable=False)  # zero-padded "HH:MM"
    appointment_type = Column(String, default='Consultation')
    status = Column(String, default='upcoming')
    reason = Column(String(500))
    notes = Column(String(1000))
    created_at = Column(DateTime, server_default=func.now())
