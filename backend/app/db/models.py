from __future__ import annotations

import uuid

from sqlalchemy import JSON, Column, DateTime, Float, Integer, String, Text, func, text

from .core import Base


class EstablishmentRegistrationRecord(Base):
    """A business submitted through the registration form, awaiting moderation."""

    __tablename__ = "establishment_registrations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    status = Column(
        String(20), nullable=False, default="pending", server_default=text("'pending'"), index=True
    )
    name = Column(String(255), nullable=False)
    category_id = Column(Integer, nullable=False)
    sub_category = Column(String(255), nullable=False)
    address = Column(String(255), nullable=False)
    city_id = Column(Integer, nullable=False, index=True)
    phone = Column(String(32), nullable=True)
    whatsapp = Column(String(32), nullable=True)
    website = Column(String(512), nullable=True)
    hours = Column(String(600), nullable=True)
    description = Column(Text, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    maps_link = Column(String(512), nullable=True)
    user_id = Column(String(128), nullable=True, index=True)
    payload = Column(JSON, nullable=False, default=dict, server_default=text("'{}'"))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "status": self.status,
            "name": self.name,
            "category_id": self.category_id,
            "sub_category": self.sub_category,
            "address": self.address,
            "city_id": self.city_id,
            "phone": self.phone,
            "whatsapp": self.whatsapp,
            "website": self.website,
            "hours": self.hours,
            "description": self.description,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "maps_link": self.maps_link,
            "user_id": self.user_id,
            "created_at": self.created_at,
        }
