import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import DECIMAL, JSON, Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from delivery_areas.app.core.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeliveryArea(Base):
    __tablename__ = 'delivery_areas'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    store_id: Mapped[str] = mapped_column(String(64))
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # circle | polygon | postal_code | city
    area_type: Mapped[str] = mapped_column(String(32))
    # circle: {"type": "circle", "center": {lat, lng}, "radius": meters}
    # polygon: {"type": "polygon", "coordinates": [{lat, lng}, ...]}
    # Older rows hold [lat, lng, radius_km] or [[lat, lng], ...] instead.
    coordinates: Mapped[Optional[Any]] = mapped_column(JSON(), nullable=True)
    postal_codes: Mapped[Optional[List[str]]] = mapped_column(JSON(), nullable=True)
    cities: Mapped[Optional[List[str]]] = mapped_column(JSON(), nullable=True)
    delivery_fee: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), default=Decimal(0))
    free_delivery_threshold: Mapped[Optional[Decimal]] = mapped_column(DECIMAL(10, 2), nullable=True)
    estimated_delivery_time_min: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    estimated_delivery_time_max: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    max_orders_per_day: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    operating_hours: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index('ix_delivery_areas_store_id', 'store_id'),
        Index('ix_delivery_areas_store_active', 'store_id', 'is_active'),
    )
