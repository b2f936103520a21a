"""Storage sink for flattened listings."""

from dataclasses import fields
from typing import Any, Dict, Iterable, List, Optional

import structlog
from sqlalchemy import case, distinct, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from listing_parser.core.exceptions import StoreError
from listing_parser.models.base import Base
from listing_parser.models.listing import Listing, ListingChange
from listing_parser.services.flattening import FlattenedRecord

logger = structlog.get_logger(__name__)

# Columns that change on every scrape and are not worth an audit row
_AUDIT_IGNORED = {"id", "created_at", "updated_at", "last_scraped"}

_RECORD_FIELDS = [f.name for f in fields(FlattenedRecord)]


def _to_record(row: Listing) -> FlattenedRecord:
    return FlattenedRecord(**{name: getattr(row, name) for name in _RECORD_FIELDS})


class ListingStore:
    """Insert-or-replace store for FlattenedRecord rows.

    Every public method opens its own session, so one store can be shared
    by concurrent tasks. Write failures surface as StoreError.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self.logger = logger.bind(service="listing_store")

    async def create_all(self) -> None:
        """Create the tables if they do not exist."""
        async with self.session_factory() as session:
            await session.run_sync(lambda sync_session: Base.metadata.create_all(sync_session.connection()))
            await session.commit()

    async def ping(self) -> bool:
        """True if the database answers a trivial query."""
        try:
            async with self.session_factory() as session:
                await session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            self.logger.error("store_ping_failed", error=str(e))
            return False

    async def upsert(self, flat: FlattenedRecord) -> None:
        """Insert a listing or replace the stored one with the same id.

        The original created_at is kept; updated_at takes the new value.

        Raises:
            StoreError: If the write failed or the record has no id
        """
        await self.upsert_many([flat])

    async def upsert_many(self, flats: Iterable[FlattenedRecord]) -> int:
        """Upsert a batch in one transaction.

        Returns:
            Number of records written
        """
        flats = list(flats)
        for flat in flats:
            if not flat.id:
                raise StoreError(flat.id, "listing has no id")
        if not flats:
            return 0

        current_id = flats[0].id
        async with self.session_factory() as session:
            try:
                for flat in flats:
                    current_id = flat.id
                    await self._upsert_one(session, flat)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise StoreError(current_id, str(e)) from e

        self.logger.debug("listings_upserted", count=len(flats))
        return len(flats)

    async def _upsert_one(self, session: AsyncSession, flat: FlattenedRecord) -> None:
        values = flat.to_dict()
        existing = await session.get(Listing, flat.id)
        if existing is None:
            session.add(Listing(**values))
            session.add(ListingChange(listing_id=flat.id, change_type="insert", source="scraper"))
            return

        values.pop("created_at")
        for name, value in values.items():
            old_value = getattr(existing, name)
            if name not in _AUDIT_IGNORED and old_value != value:
                session.add(
                    ListingChange(
                        listing_id=flat.id,
                        change_type="update",
                        field_name=name,
                        old_value=str(old_value),
                        new_value=str(value),
                        source="scraper",
                    )
                )
            setattr(existing, name, value)

    async def get_by_id(self, listing_id: str) -> Optional[FlattenedRecord]:
        async with self.session_factory() as session:
            row = await session.get(Listing, listing_id)
            return _to_record(row) if row is not None else None

    async def get_stats(self) -> Dict[str, Any]:
        """Aggregate counts over the stored listings."""
        query = select(
            func.count(Listing.id),
            func.sum(case((Listing.personal_age > 0, 1), else_=0)),
            func.sum(case((Listing.price_hour > 0, 1), else_=0)),
            func.sum(case((Listing.contact_phone != "", 1), else_=0)),
            func.sum(case((Listing.photos_count > 0, 1), else_=0)),
            func.avg(case((Listing.personal_age > 0, Listing.personal_age), else_=None)),
            func.avg(case((Listing.price_hour > 0, Listing.price_hour), else_=None)),
            func.count(distinct(Listing.location_city)),
        )
        async with self.session_factory() as session:
            row = (await session.execute(query)).one()

        total, with_age, with_price, with_phone, with_photos, avg_age, avg_price, cities = row
        return {
            "total_listings": total or 0,
            "listings_with_age": int(with_age or 0),
            "listings_with_price": int(with_price or 0),
            "listings_with_phone": int(with_phone or 0),
            "listings_with_photos": int(with_photos or 0),
            "avg_age": round(float(avg_age), 1) if avg_age is not None else None,
            "avg_price_hour": round(float(avg_price), 2) if avg_price is not None else None,
            "unique_cities": cities or 0,
        }

    async def log_change(
        self,
        listing_id: str,
        change_type: str,
        field_name: str = "",
        old_value: Optional[str] = None,
        new_value: Optional[str] = None,
        source: str = "scraper",
    ) -> None:
        """Write one audit row to listing_changes.

        Raises:
            StoreError: If the write failed
        """
        async with self.session_factory() as session:
            try:
                session.add(
                    ListingChange(
                        listing_id=listing_id,
                        change_type=change_type,
                        field_name=field_name,
                        old_value=old_value,
                        new_value=new_value,
                        source=source,
                    )
                )
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise StoreError(listing_id, str(e)) from e

    async def get_changes(self, listing_id: str) -> List[ListingChange]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ListingChange)
                .where(ListingChange.listing_id == listing_id)
                .order_by(ListingChange.id)
            )
            return list(result.scalars().all())
