"""Listing storage models."""

from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from listing_parser.models.base import Base, TimestampMixin


class Listing(TimestampMixin, Base):
    """One flattened listing, replaced in place on every scrape.

    Column names match FlattenedRecord field names one to one.
    """

    __tablename__ = "listings"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    source_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    last_scraped: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Personal
    personal_name: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    personal_age: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    personal_height: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    personal_weight: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    personal_breast_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    personal_hair_color: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    personal_eye_color: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    personal_body_type: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    # Contact
    contact_phone: Mapped[str] = mapped_column(String(50), nullable=False, default="", index=True)
    contact_telegram: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    contact_email: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    # Pricing
    pricing_currency: Mapped[str] = mapped_column(String(5), nullable=False, default="RUB")
    price_apartments_day_hour: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price_apartments_day_2hour: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price_apartments_night_hour: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price_apartments_night_2hour: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price_outcall_day_hour: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price_outcall_day_2hour: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price_outcall_night_hour: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price_outcall_night_2hour: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price_hour: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price_2_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price_night: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price_day: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price_base: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pricing_duration_prices: Mapped[Dict[str, int]] = mapped_column(JSON, nullable=False, default=dict)
    pricing_service_prices: Mapped[Dict[str, int]] = mapped_column(JSON, nullable=False, default=dict)

    # Services
    service_available: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    service_additional: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    service_restrictions: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    service_meeting_type: Mapped[str] = mapped_column(String(20), nullable=False, default="")

    # Location
    location_metro_stations: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    location_district: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    location_city: Mapped[str] = mapped_column(String(100), nullable=False, default="", index=True)
    location_outcall_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    location_incall_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    last_updated: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    photos: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    photos_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("idx_listings_last_scraped", "last_scraped"),
    )

    def __repr__(self) -> str:
        return f"<Listing(id={self.id}, city={self.location_city})>"


class ListingChange(Base):
    """Audit trail of field-level changes to a listing."""

    __tablename__ = "listing_changes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    listing_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    change_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Type: 'insert', 'update', 'delete'"
    )
    field_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    old_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    new_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source: Mapped[str] = mapped_column(String(50), nullable=False, default="scraper")
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ListingChange(listing_id={self.listing_id}, type={self.change_type})>"
