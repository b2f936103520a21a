"""Projection of a ListingRecord into one wide, storage-friendly row."""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from listing_parser.scrapers.base import DEFAULT_CURRENCY, ListingRecord, PricingInfo


@dataclass
class FlattenedRecord:
    # Identification and audit
    id: str
    source_url: str
    created_at: datetime
    updated_at: datetime
    last_scraped: datetime

    # Personal
    personal_name: str = ""
    personal_age: int = 0
    personal_height: int = 0
    personal_weight: int = 0
    personal_breast_size: int = 0
    personal_hair_color: str = ""
    personal_eye_color: str = ""
    personal_body_type: str = ""

    # Contact
    contact_phone: str = ""
    contact_telegram: str = ""
    contact_email: str = ""

    pricing_currency: str = DEFAULT_CURRENCY

    # Canonical slots
    price_apartments_day_hour: int = 0
    price_apartments_day_2hour: int = 0
    price_apartments_night_hour: int = 0
    price_apartments_night_2hour: int = 0
    price_outcall_day_hour: int = 0
    price_outcall_day_2hour: int = 0
    price_outcall_night_hour: int = 0
    price_outcall_night_2hour: int = 0

    # Derived legacy columns
    price_hour: int = 0
    price_2_hours: int = 0
    price_night: int = 0
    price_day: int = 0
    price_base: int = 0

    pricing_duration_prices: Dict[str, int] = field(default_factory=dict)
    pricing_service_prices: Dict[str, int] = field(default_factory=dict)

    # Services
    service_available: List[str] = field(default_factory=list)
    service_additional: List[str] = field(default_factory=list)
    service_restrictions: List[str] = field(default_factory=list)
    service_meeting_type: str = ""

    # Location
    location_metro_stations: List[str] = field(default_factory=list)
    location_district: str = ""
    location_city: str = ""
    location_outcall_available: bool = False
    location_incall_available: bool = False

    description: str = ""
    last_updated: str = ""
    photos: List[str] = field(default_factory=list)
    photos_count: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def _derive(pricing: PricingInfo, slot: str, legacy_keys: tuple) -> int:
    """First positive canonical price for slot (apartments, then outcall),
    else the first legacy key present.

    A present legacy value is taken even when it is 0.
    """
    for group in ("apartments", "outcall"):
        value = pricing.duration_prices.get(f"{group}_{slot}", 0)
        if value > 0:
            return value
    for key in legacy_keys:
        if key in pricing.legacy_prices:
            return pricing.legacy_prices[key]
    return 0


def flatten_listing(
    record: ListingRecord,
    source_url: str,
    now: Optional[datetime] = None,
    default_city: str = "Unknown",
) -> FlattenedRecord:
    """Build a FlattenedRecord from an extracted listing.

    Legacy price columns follow a fixed priority:

        price_hour    apartments_day_hour > outcall_day_hour > "час" > "hour"
        price_2_hours apartments_day_2hour > outcall_day_2hour > "2 часа" > "2 hours"
        price_night   apartments_night_hour > outcall_night_hour > "ночь" > "night"
        price_day     apartments_day_2hour > outcall_day_2hour > "день" > "day"
        price_base    "base" if present, else price_hour

    Args:
        record: Extracted listing
        source_url: Page the listing was scraped from
        now: Timestamp for created_at/updated_at/last_scraped (defaults to now, UTC)
        default_city: City used when the record carries none

    Returns:
        A new FlattenedRecord; the input record is not modified
    """
    now = now or datetime.now(timezone.utc)
    pricing = record.pricing
    canonical = pricing.duration_prices

    price_hour = _derive(pricing, "day_hour", ("час", "hour"))
    if "base" in pricing.legacy_prices:
        price_base = pricing.legacy_prices["base"]
    else:
        price_base = price_hour

    return FlattenedRecord(
        id=record.id,
        source_url=source_url,
        created_at=now,
        updated_at=now,
        last_scraped=now,
        personal_name=record.personal.name,
        personal_age=record.personal.age,
        personal_height=record.personal.height_cm,
        personal_weight=record.personal.weight_kg,
        personal_breast_size=record.personal.breast_size,
        personal_hair_color=record.personal.hair_color,
        personal_eye_color=record.personal.eye_color,
        personal_body_type=record.personal.body_type,
        contact_phone=record.contact.phone,
        contact_telegram=record.contact.telegram,
        contact_email=record.contact.email,
        pricing_currency=pricing.currency or DEFAULT_CURRENCY,
        price_apartments_day_hour=canonical.get("apartments_day_hour", 0),
        price_apartments_day_2hour=canonical.get("apartments_day_2hour", 0),
        price_apartments_night_hour=canonical.get("apartments_night_hour", 0),
        price_apartments_night_2hour=canonical.get("apartments_night_2hour", 0),
        price_outcall_day_hour=canonical.get("outcall_day_hour", 0),
        price_outcall_day_2hour=canonical.get("outcall_day_2hour", 0),
        price_outcall_night_hour=canonical.get("outcall_night_hour", 0),
        price_outcall_night_2hour=canonical.get("outcall_night_2hour", 0),
        price_hour=price_hour,
        price_2_hours=_derive(pricing, "day_2hour", ("2 часа", "2 hours")),
        price_night=_derive(pricing, "night_hour", ("ночь", "night")),
        price_day=_derive(pricing, "day_2hour", ("день", "day")),
        price_base=price_base,
        pricing_duration_prices=pricing.all_duration_prices(),
        pricing_service_prices=dict(pricing.service_prices),
        service_available=list(record.services.available),
        service_additional=list(record.services.additional),
        service_restrictions=list(record.services.restrictions),
        service_meeting_type=record.services.meeting_type,
        location_metro_stations=list(record.location.metro_stations),
        location_district=record.location.district,
        location_city=record.location.city or default_city,
        location_outcall_available=record.location.outcall_available,
        location_incall_available=record.location.incall_available,
        description=record.description,
        last_updated=record.last_updated,
        photos=list(record.photos),
        photos_count=len(record.photos),
    )
