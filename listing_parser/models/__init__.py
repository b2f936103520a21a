"""SQLAlchemy models for the listing store."""

from listing_parser.models.base import Base, TimestampMixin
from listing_parser.models.listing import Listing, ListingChange

__all__ = [
    "Base",
    "TimestampMixin",
    "Listing",
    "ListingChange",
]
