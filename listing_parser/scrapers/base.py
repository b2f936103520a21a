"""Listing record data structures shared by the extractor and the flattener.

Numeric fields use 0 as the "unset" value. The extractor only ever stores
values that passed the field's plausibility range, so any non-zero number
in a ListingRecord is within bounds.
"""

from dataclasses import asdict, dataclass, field
from typing import Dict, List

# Inclusive plausibility ranges
AGE_RANGE = (17, 79)
HEIGHT_RANGE = (141, 219)
WEIGHT_RANGE = (31, 149)
BREAST_SIZE_RANGE = (1, 9)

DEFAULT_CURRENCY = "RUB"

MEETING_TYPES = ("apartment", "outcall", "both", "hotel", "")

# Canonical duration-price slots: <group>_<period>_<duration>
PRICE_GROUPS = ("apartments", "outcall")
PRICE_SLOTS = ("day_hour", "day_2hour", "night_hour", "night_2hour")
CANONICAL_PRICE_KEYS = tuple(f"{group}_{slot}" for group in PRICE_GROUPS for slot in PRICE_SLOTS)

# Legacy locale-keyed slots and the canonical slot each one stands in for
LEGACY_PRICE_SLOTS = {
    "час": "day_hour",
    "hour": "day_hour",
    "2 часа": "day_2hour",
    "2 hours": "day_2hour",
    "ночь": "night_hour",
    "night": "night_hour",
    "день": "day_2hour",
    "day": "day_2hour",
    "base": None,  # stands in for every slot
}


@dataclass
class PersonalInfo:
    name: str = ""
    age: int = 0
    height_cm: int = 0
    weight_kg: int = 0
    breast_size: int = 0
    hair_color: str = ""
    eye_color: str = ""
    body_type: str = ""


@dataclass
class ContactInfo:
    phone: str = ""
    telegram: str = ""
    email: str = ""
    whatsapp_available: bool = False
    viber_available: bool = False


@dataclass
class PricingInfo:
    """Prices keyed by time slot.

    ``duration_prices`` only ever holds canonical keys (CANONICAL_PRICE_KEYS);
    ``legacy_prices`` only holds LEGACY_PRICE_SLOTS keys and is filled for a
    slot only when the matching canonical slots are absent.
    """

    currency: str = DEFAULT_CURRENCY
    duration_prices: Dict[str, int] = field(default_factory=dict)
    legacy_prices: Dict[str, int] = field(default_factory=dict)
    service_prices: Dict[str, int] = field(default_factory=dict)

    def all_duration_prices(self) -> Dict[str, int]:
        """Canonical and legacy prices in one map (canonical keys first)."""
        merged = dict(self.duration_prices)
        for key, value in self.legacy_prices.items():
            merged.setdefault(key, value)
        return merged


@dataclass
class ServiceInfo:
    available: List[str] = field(default_factory=list)
    additional: List[str] = field(default_factory=list)
    restrictions: List[str] = field(default_factory=list)
    meeting_type: str = ""

    def __post_init__(self):
        """Validate data after initialization."""
        if self.meeting_type not in MEETING_TYPES:
            raise ValueError(f"Invalid meeting_type: {self.meeting_type}")


@dataclass
class LocationInfo:
    metro_stations: List[str] = field(default_factory=list)
    district: str = ""
    city: str = ""
    outcall_available: bool = False
    incall_available: bool = False


@dataclass
class ListingRecord:
    """Canonical extracted listing returned by ListingExtractor."""

    id: str = ""
    personal: PersonalInfo = field(default_factory=PersonalInfo)
    contact: ContactInfo = field(default_factory=ContactInfo)
    pricing: PricingInfo = field(default_factory=PricingInfo)
    services: ServiceInfo = field(default_factory=ServiceInfo)
    location: LocationInfo = field(default_factory=LocationInfo)
    description: str = ""
    last_updated: str = ""
    photos: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Plain nested dict, suitable for JSON serialization."""
        return asdict(self)


def in_range(value: int, bounds: tuple) -> bool:
    """Check a value against an inclusive (low, high) range."""
    low, high = bounds
    return low <= value <= high
