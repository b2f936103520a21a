"""Heuristic field extraction from listing pages.

Each logical field has an ordered chain of strategies. A strategy is a plain
function over a PageContext that returns a candidate value or None. The
first candidate that passes the field's acceptance check wins; a candidate
that fails the check (for example an out-of-range age) moves the chain on
to the next strategy. A field whose chain yields nothing keeps its unset
value, so one missing field never fails the record.

Structural strategies (element ids, label/value table rows) come first,
free-text regexes last, most specific pattern first.
"""

import re
from dataclasses import dataclass
from functools import cached_property
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

import structlog
from bs4 import BeautifulSoup, Tag

from listing_parser.scrapers.base import (
    AGE_RANGE,
    BREAST_SIZE_RANGE,
    CANONICAL_PRICE_KEYS,
    HEIGHT_RANGE,
    LEGACY_PRICE_SLOTS,
    PRICE_GROUPS,
    WEIGHT_RANGE,
    ContactInfo,
    ListingRecord,
    LocationInfo,
    PersonalInfo,
    PricingInfo,
    ServiceInfo,
    in_range,
)
from listing_parser.scrapers.link_discovery import extract_id_from_url
from listing_parser.scrapers.utils.normalizer import (
    PriceNormalizer,
    absolutize_url,
    clean_text,
    dedupe_preserving_order,
    is_sane_length,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass
class PageContext:
    """One parsed page plus the derived views every strategy needs."""

    soup: BeautifulSoup
    url: str
    text: str
    lower_text: str

    @classmethod
    def build(cls, soup: BeautifulSoup, url: str) -> "PageContext":
        text = clean_text(soup.get_text(" "))
        return cls(soup=soup, url=url, text=text, lower_text=text.lower())

    @cached_property
    def label_rows(self) -> List[Tuple[str, Tag]]:
        """(lower-cased label, value cell) for every short-labelled table row."""
        rows = []
        for row in self.soup.find_all("tr"):
            cells = row.find_all(["td", "th"], recursive=False)
            if len(cells) < 2:
                continue
            label = clean_text(cells[0].get_text(" ")).lower()
            if label and len(label) <= 40:
                rows.append((label, cells[1]))
        return rows


Strategy = Callable[[PageContext], Optional[T]]


def first_accepted(
    strategies: Sequence[Strategy],
    ctx: PageContext,
    accept: Callable[[T], bool],
) -> Optional[T]:
    """Run strategies in order and return the first accepted candidate."""
    for strategy in strategies:
        value = strategy(ctx)
        if value is not None and accept(value):
            return value
    return None


# ============================================================================
# Strategy builders
# ============================================================================

_FIRST_INT = re.compile(r"\d+")


def _parse_int(text: str) -> Optional[int]:
    match = _FIRST_INT.search(text or "")
    return int(match.group(0)) if match else None


def element_text(selector: str) -> Strategy:
    """Trimmed text of the first element matching a CSS selector."""

    def strategy(ctx: PageContext) -> Optional[str]:
        element = ctx.soup.select_one(selector)
        if element is None:
            return None
        return clean_text(element.get_text(" ")) or None

    return strategy


def element_int(selector: str) -> Strategy:
    def strategy(ctx: PageContext) -> Optional[int]:
        text = element_text(selector)(ctx)
        return _parse_int(text) if text else None

    return strategy


def row_text(*labels: str) -> Strategy:
    """Value cell text of the first table row whose label contains any of labels."""

    def strategy(ctx: PageContext) -> Optional[str]:
        for label, cell in ctx.label_rows:
            if any(wanted in label for wanted in labels):
                return clean_text(cell.get_text(" ")) or None
        return None

    return strategy


def row_int(*labels: str) -> Strategy:
    def strategy(ctx: PageContext) -> Optional[int]:
        text = row_text(*labels)(ctx)
        return _parse_int(text) if text else None

    return strategy


def text_match(pattern: str, flags: int = 0) -> Strategy:
    """First group of the first match over the lower-cased page text.

    Only the first match is considered; an implausible match does not make
    the pattern search further down the page.
    """
    regex = re.compile(pattern, flags)

    def strategy(ctx: PageContext) -> Optional[str]:
        match = regex.search(ctx.lower_text)
        return match.group(1).strip() if match else None

    return strategy


def text_int(pattern: str) -> Strategy:
    def strategy(ctx: PageContext) -> Optional[int]:
        value = text_match(pattern)(ctx)
        return int(value) if value else None

    return strategy


def _label(word: str) -> str:
    """Label-qualified number: "Возраст: 32", "рост - 170"."""
    return rf"(?<!\w){word}\s*[:\-–—]?\s*"


# ============================================================================
# Field chains
# ============================================================================

AGE_STRATEGIES: List[Strategy] = [
    element_int("#tdankage"),
    row_int("возраст"),
    text_int(_label("возраст") + r"(\d{1,3})"),
    text_int(_label("age") + r"(\d{1,3})"),
    text_int(r"(?<!\d)(\d{2})\s*(?:лет|года|год)(?!\w)"),
    text_int(r"(?<!\d)(\d{2})\s*(?:years|y\.o\.)"),
]

HEIGHT_STRATEGIES: List[Strategy] = [
    element_int("#tdankhei"),
    row_int("рост", "height"),
    text_int(_label("рост") + r"(\d{2,3})"),
    text_int(_label("height") + r"(\d{2,3})"),
    text_int(r"(?<!\d)(\d{3})\s*см(?!\w)"),
]

WEIGHT_STRATEGIES: List[Strategy] = [
    element_int("#tdankwei"),
    row_int("вес", "weight"),
    text_int(_label("вес") + r"(\d{2,3})"),
    text_int(_label("weight") + r"(\d{2,3})"),
    text_int(r"(?<!\d)(\d{2,3})\s*кг(?!\w)"),
]

BREAST_STRATEGIES: List[Strategy] = [
    element_int("#tdankbre"),
    row_int("грудь", "breast"),
    text_int(_label("грудь") + r"(\d{1,2})"),
    text_int(_label("breast") + r"(\d{1,2})"),
    text_int(r"(?<!\d)(\d)\s*(?:-?[йя])?\s*размер"),
]

_WORD = r"([а-яёa-z][а-яёa-z\-]*)"

HAIR_STRATEGIES: List[Strategy] = [
    element_text("#tdankinhc"),
    row_text("цвет волос", "волосы", "hair"),
    text_match(_label("цвет волос") + _WORD),
    text_match(_label("волосы") + _WORD),
]

EYE_STRATEGIES: List[Strategy] = [
    row_text("цвет глаз", "глаза", "eyes"),
    text_match(_label("цвет глаз") + _WORD),
    text_match(_label("глаза") + _WORD),
]

BODY_TYPE_STRATEGIES: List[Strategy] = [
    element_text("#tdankcloth"),
    row_text("телосложение", "размер одежды"),
    text_match(_label("телосложение") + _WORD),
]


def _title_text(ctx: PageContext) -> Optional[str]:
    if ctx.soup.title is None:
        return None
    return clean_text(ctx.soup.title.get_text()) or None


NAME_STRATEGIES: List[Strategy] = [_title_text, element_text("h1")]


def _accept_range(bounds: tuple) -> Callable[[int], bool]:
    return lambda value: in_range(value, bounds)


def _accept_short_text(value: str) -> bool:
    return 1 <= len(value) <= 50


# Contacts

_PHONE_PATTERN = re.compile(r"(?:\+7|8)[\s\-(]*\d{3}[\s\-)]*\d{3}[\s\-]*\d{2}[\s\-]*\d{2}")
_EMAIL_PATTERN = re.compile(r"[\w.+\-]+@[\w\-]+\.[\w.\-]+")
_HANDLE = r"([A-Za-z0-9_]+)"


def _tel_href(anchor: Optional[Tag]) -> Optional[str]:
    if anchor is None:
        return None
    href = anchor.get("href", "")
    if href.startswith("tel:"):
        return clean_text(href[len("tel:"):]) or None
    return clean_text(anchor.get_text(" ")) or None


def _phone_from_block(ctx: PageContext) -> Optional[str]:
    return _tel_href(ctx.soup.select_one("#tdmobphone a"))


def _phone_from_tel_link(ctx: PageContext) -> Optional[str]:
    return _tel_href(ctx.soup.select_one('a[href^="tel:"]'))


def _phone_from_text(ctx: PageContext) -> Optional[str]:
    match = _PHONE_PATTERN.search(ctx.text)
    return match.group(0).strip() if match else None


PHONE_STRATEGIES: List[Strategy] = [_phone_from_block, _phone_from_tel_link, _phone_from_text]


def _telegram_pattern(pattern: str) -> Strategy:
    regex = re.compile(pattern, re.IGNORECASE)

    def strategy(ctx: PageContext) -> Optional[str]:
        match = regex.search(ctx.text)
        return match.group(1) if match else None

    return strategy


def _telegram_from_link(ctx: PageContext) -> Optional[str]:
    for anchor in ctx.soup.select('a[href*="t.me/"]'):
        match = re.search(r"t\.me/" + _HANDLE, anchor.get("href", ""))
        if match:
            return match.group(1)
    return None


TELEGRAM_STRATEGIES: List[Strategy] = [
    _telegram_pattern(r"(?<!\w)(?:телеграм[мь]?|telegram|тг)\s*[:\-]?\s*@?" + _HANDLE),
    _telegram_from_link,
    _telegram_pattern(r"t\.me/" + _HANDLE),
    _telegram_pattern(r"(?<![\w.@])@" + _HANDLE),
]


def _accept_handle(handle: str) -> bool:
    return 3 <= len(handle) <= 49


def _email_from_link(ctx: PageContext) -> Optional[str]:
    anchor = ctx.soup.select_one('a[href^="mailto:"]')
    if anchor is None:
        return None
    return anchor.get("href", "")[len("mailto:"):].split("?")[0].strip() or None


def _email_from_text(ctx: PageContext) -> Optional[str]:
    match = _EMAIL_PATTERN.search(ctx.text)
    return match.group(0) if match else None


EMAIL_STRATEGIES: List[Strategy] = [_email_from_link, _email_from_text]

# Meeting place keywords (matched against lower-cased page text)
INCALL_KEYWORDS = ("апартамент", "у меня", "принимаю", "incall")
OUTCALL_KEYWORDS = ("выезд", "outcall")

# Legacy free-text prices: label followed by an amount
_AMOUNT = r"(\d{1,3}(?: \d{3})+|\d+)"
_SEP = r"\s*[:\-–—=]?\s*(?:от\s*)?"
LEGACY_PRICE_PATTERNS: List[Tuple[str, "re.Pattern[str]"]] = [
    ("2 часа", re.compile(r"(?<!\d)2\s*часа(?!\w)" + _SEP + _AMOUNT)),
    ("час", re.compile(r"(?<!\w)час(?!\w)" + _SEP + _AMOUNT)),
    ("ночь", re.compile(r"(?<!\w)ночь(?!\w)" + _SEP + _AMOUNT)),
    ("день", re.compile(r"(?<!\w)день(?!\w)" + _SEP + _AMOUNT)),
    ("base", re.compile(r"(?<!\w)(?:цена|стоимость|price)(?!\w)" + _SEP + _AMOUNT)),
    ("2 hours", re.compile(r"(?<!\d)2\s*hours(?!\w)" + _SEP + _AMOUNT)),
    ("hour", re.compile(r"(?<!\w)hour(?!\w)" + _SEP + _AMOUNT)),
    ("night", re.compile(r"(?<!\w)night(?!\w)" + _SEP + _AMOUNT)),
    ("day", re.compile(r"(?<!\w)day(?!\w)" + _SEP + _AMOUNT)),
]

_DATE = re.compile(r"(\d{2}\.\d{2}\.\d{4})")
_IMAGE_URL = re.compile(r"\.(?:jpe?g|png|webp|gif)(?:[?#]|$)", re.IGNORECASE)
_NOT_PHOTO = re.compile(r"icon|logo|counter|banner|pixel|sprite|button", re.IGNORECASE)


# ============================================================================
# Price table
# ============================================================================


def _span(cell: Tag, attr: str) -> int:
    try:
        return max(1, int(cell.get(attr, 1)))
    except (TypeError, ValueError):
        return 1


def _take_carried(
    cells: List[str],
    carried: Dict[int, Tuple[str, int]],
    pending: Dict[int, Tuple[str, int]],
) -> None:
    """Append cells spanning down from earlier rows at the current column."""
    while len(cells) in carried:
        text, rows_left = carried.pop(len(cells))
        if rows_left > 1:
            pending[len(cells)] = (text, rows_left - 1)
        cells.append(text)


def _table_grid(table: Tag) -> List[List[str]]:
    """Cell texts of every row, colspans repeated and rowspans carried down.

    Columns line up across rows, so a header label spanning two rows does
    not shift the cells of the row below it.
    """
    grid: List[List[str]] = []
    carried: Dict[int, Tuple[str, int]] = {}
    for row in table.find_all("tr"):
        cells: List[str] = []
        pending: Dict[int, Tuple[str, int]] = {}
        for cell in row.find_all(["td", "th"], recursive=False):
            _take_carried(cells, carried, pending)
            text = clean_text(cell.get_text(" "))
            rowspan = _span(cell, "rowspan")
            for _ in range(_span(cell, "colspan")):
                if rowspan > 1:
                    pending[len(cells)] = (text, rowspan - 1)
                cells.append(text)
        _take_carried(cells, carried, pending)

        # Spanning cells past the end of a short row
        while carried:
            col = min(carried)
            if col < len(cells):
                carried.pop(col)
                continue
            cells.extend([""] * (col - len(cells)))
            _take_carried(cells, carried, pending)

        carried = pending
        grid.append(cells)
    return grid


def _column_slot(header_text: str) -> Optional[str]:
    """Map a column's combined header text to a slot suffix like "night_2hour"."""
    text = header_text.lower()
    period = "night" if ("ноч" in text or "night" in text) else "day"
    if re.search(r"2\s*(?:час|hour)", text):
        return f"{period}_2hour"
    if "час" in text or "hour" in text or "ночь" in text:
        return f"{period}_hour"
    return None


def _row_group(label: str) -> Optional[str]:
    label = label.lower()
    if any(keyword in label for keyword in ("апарт", "у меня", "incall")):
        return "apartments"
    if any(keyword in label for keyword in OUTCALL_KEYWORDS):
        return "outcall"
    return None


def _find_price_table(soup: BeautifulSoup) -> Optional[Tag]:
    table = soup.select_one("table.table-price-inner") or soup.select_one("table.table-price")
    if table is not None:
        return table
    for candidate in soup.find_all("table"):
        if candidate.find("table") is not None:
            continue
        text = candidate.get_text(" ").lower()
        if ("час" in text or "hour" in text) and _row_group(text):
            return candidate
    return None


def parse_price_table(soup: BeautifulSoup) -> Dict[str, int]:
    """Read canonical duration prices from the price table.

    Column identity comes from the header rows (the rows above the first row
    carrying a price), never from column position. Row groups come from the
    row label; unlabelled tables read their first two price rows as
    apartments then outcall.
    """
    table = _find_price_table(soup)
    if table is None:
        return {}

    rows = [row for row in _table_grid(table) if row]
    first_data = next(
        (i for i, row in enumerate(rows) if any(PriceNormalizer.clean_price(c) > 0 for c in row[1:])),
        None,
    )
    if first_data is None:
        return {}

    header_rows = rows[:first_data]
    data_rows = [row for row in rows[first_data:] if any(PriceNormalizer.clean_price(c) > 0 for c in row[1:])]

    width = max(len(row) for row in rows)
    columns: Dict[int, str] = {}
    taken = set()
    for col in range(1, width):
        combined = " ".join(row[col] for row in header_rows if col < len(row))
        slot = _column_slot(combined)
        if slot and slot not in taken:
            columns[col] = slot
            taken.add(slot)
    if not columns:
        return {}

    grouped: List[Tuple[str, List[str]]] = []
    for row in data_rows:
        group = _row_group(row[0])
        if group is not None:
            grouped.append((group, row))
    if not grouped:
        grouped = list(zip(PRICE_GROUPS, data_rows))

    prices: Dict[str, int] = {}
    seen_groups = set()
    for group, row in grouped:
        if group in seen_groups:
            continue
        seen_groups.add(group)
        for col, slot in columns.items():
            if col < len(row):
                value = PriceNormalizer.clean_price(row[col])
                key = f"{group}_{slot}"
                if value > 0 and key in CANONICAL_PRICE_KEYS:
                    prices[key] = value
    return prices


def parse_legacy_prices(lower_text: str, canonical: Dict[str, int]) -> Dict[str, int]:
    """Free-text prices for the slots the table did not cover."""
    legacy: Dict[str, int] = {}
    for key, pattern in LEGACY_PRICE_PATTERNS:
        slot = LEGACY_PRICE_SLOTS[key]
        if slot is None:
            if canonical:
                continue
        elif any(f"{group}_{slot}" in canonical for group in PRICE_GROUPS):
            continue
        match = pattern.search(lower_text)
        if not match:
            continue
        value = PriceNormalizer.normalize_price_token(match.group(1))
        if value is not None:
            legacy[key] = value
    return legacy


# ============================================================================
# Extractor
# ============================================================================


class ListingExtractor:
    """Builds a ListingRecord from a parsed listing page.

    Extraction is a pure function of (document, url): the same document
    always yields the same record.
    """

    def __init__(self, default_city: str = "Moscow"):
        self.default_city = default_city

    def extract(self, soup: BeautifulSoup, url: str) -> ListingRecord:
        """Extract every field from a parsed document.

        Args:
            soup: Parsed listing page
            url: Page URL (source of the listing id and base for relative links)

        Returns:
            ListingRecord with unset fields where no strategy matched
        """
        ctx = PageContext.build(soup, url)
        pricing = self.extract_pricing(ctx)
        services = self.extract_services(ctx, pricing)
        record = ListingRecord(
            id=extract_id_from_url(url),
            personal=self.extract_personal(ctx),
            contact=self.extract_contact(ctx),
            pricing=pricing,
            services=services,
            location=self.extract_location(ctx),
            description=self.extract_description(ctx),
            last_updated=self.extract_last_updated(ctx),
            photos=self.extract_photos(ctx),
        )
        logger.debug(
            "listing_extracted",
            url=url,
            listing_id=record.id,
            prices=len(pricing.duration_prices) + len(pricing.legacy_prices),
            photos=len(record.photos),
        )
        return record

    def extract_personal(self, ctx: PageContext) -> PersonalInfo:
        return PersonalInfo(
            name=first_accepted(NAME_STRATEGIES, ctx, bool) or "",
            age=first_accepted(AGE_STRATEGIES, ctx, _accept_range(AGE_RANGE)) or 0,
            height_cm=first_accepted(HEIGHT_STRATEGIES, ctx, _accept_range(HEIGHT_RANGE)) or 0,
            weight_kg=first_accepted(WEIGHT_STRATEGIES, ctx, _accept_range(WEIGHT_RANGE)) or 0,
            breast_size=first_accepted(BREAST_STRATEGIES, ctx, _accept_range(BREAST_SIZE_RANGE)) or 0,
            hair_color=first_accepted(HAIR_STRATEGIES, ctx, _accept_short_text) or "",
            eye_color=first_accepted(EYE_STRATEGIES, ctx, _accept_short_text) or "",
            body_type=first_accepted(BODY_TYPE_STRATEGIES, ctx, _accept_short_text) or "",
        )

    def extract_contact(self, ctx: PageContext) -> ContactInfo:
        telegram = first_accepted(TELEGRAM_STRATEGIES, ctx, _accept_handle)
        if telegram:
            telegram = "@" + telegram
        elif ctx.soup.select_one('a[href*="telegram"], a[href*="t.me"], .sTelegram') is not None:
            telegram = "available"

        return ContactInfo(
            phone=first_accepted(PHONE_STRATEGIES, ctx, bool) or "",
            telegram=telegram or "",
            email=first_accepted(EMAIL_STRATEGIES, ctx, bool) or "",
            whatsapp_available=ctx.soup.select_one('a[href*="whatsapp"], a[href*="wa.me"], .sWhatsApp') is not None,
            viber_available="viber" in ctx.lower_text,
        )

    def extract_pricing(self, ctx: PageContext) -> PricingInfo:
        canonical = parse_price_table(ctx.soup)
        return PricingInfo(
            duration_prices=canonical,
            legacy_prices=parse_legacy_prices(ctx.lower_text, canonical),
        )

    def extract_services(self, ctx: PageContext, pricing: PricingInfo) -> ServiceInfo:
        """Services from the services table; fills pricing.service_prices.

        Checkbox markup wins when present (checked means available, unchecked
        means restriction); otherwise service links are read, where
        "Name + price" marks a paid additional service.
        """
        available: List[str] = []
        additional: List[str] = []
        restrictions: List[str] = []

        def add(raw: str, offered: bool) -> None:
            name, plus, price_text = clean_text(raw).partition("+")
            name = name.strip()
            if not is_sane_length(name):
                return
            if not offered:
                restrictions.append(name)
            elif plus:
                additional.append(name)
                price = PriceNormalizer.normalize_price_token(price_text.strip())
                if price is not None:
                    pricing.service_prices.setdefault(name, price)
            else:
                available.append(name)

        table = self._find_services_table(ctx.soup)
        if table is not None:
            checkboxes = table.select('input[type="checkbox"]')
            for checkbox in checkboxes:
                link = checkbox.find_next_sibling("a")
                if link is not None:
                    name = link.get_text(" ")
                else:
                    name = clean_text(checkbox.parent.get_text(" ")).lstrip("✓☑").strip()
                add(name, offered=checkbox.has_attr("checked"))

            if not checkboxes:
                for link in table.select('a[href*="style"], a[href*="type"]'):
                    add(link.get_text(" "), offered=True)

        has_incall = any(keyword in ctx.lower_text for keyword in INCALL_KEYWORDS)
        has_outcall = any(keyword in ctx.lower_text for keyword in OUTCALL_KEYWORDS)
        if has_incall and has_outcall:
            meeting_type = "both"
        elif has_incall:
            meeting_type = "apartment"
        elif has_outcall:
            meeting_type = "outcall"
        else:
            meeting_type = ""

        return ServiceInfo(
            available=dedupe_preserving_order(available),
            additional=dedupe_preserving_order(additional),
            restrictions=dedupe_preserving_order(restrictions),
            meeting_type=meeting_type,
        )

    @staticmethod
    def _find_services_table(soup: BeautifulSoup) -> Optional[Tag]:
        table = soup.select_one("table.uslugi_block")
        if table is not None:
            return table
        for candidate in soup.find_all("table"):
            text = candidate.get_text(" ")
            if "Секс" in text or "Массаж" in text:
                return candidate
        return None

    def extract_location(self, ctx: PageContext) -> LocationInfo:
        city = element_text("#tdankcity")(ctx) or self.default_city

        metro = [clean_text(a.get_text(" ")) for a in ctx.soup.select('a[href*="metro"]')]
        metro = [station for station in metro if len(station) > 2]

        district = ""
        for anchor in ctx.soup.select('a[href*="district"]'):
            district = clean_text(anchor.get_text(" "))
            if district:
                break

        if not metro or not district:
            for label, cell in ctx.label_rows:
                if "метро" in label and not metro:
                    metro = [clean_text(a.get_text(" ")) for a in cell.find_all("a")]
                    metro = [station for station in metro if len(station) > 2]
                if "район" in label and not district:
                    district = clean_text(cell.get_text(" "))

        return LocationInfo(
            metro_stations=dedupe_preserving_order(metro),
            district=district,
            city=city,
            outcall_available=any(keyword in ctx.lower_text for keyword in OUTCALL_KEYWORDS),
            incall_available=any(keyword in ctx.lower_text for keyword in INCALL_KEYWORDS),
        )

    def extract_description(self, ctx: PageContext) -> str:
        letter = ctx.soup.select_one("p.pnletter")
        if letter is not None:
            text = clean_text(letter.get_text(" "))
            if text:
                return text

        candidates = [clean_text(td.get_text(" ")) for td in ctx.soup.select('td[colspan="2"]')]
        candidates = [text for text in candidates if len(text) > 50]
        if candidates:
            return max(candidates, key=len)

        meta = ctx.soup.find("meta", attrs={"name": "description"})
        if meta is not None:
            return clean_text(meta.get("content", ""))
        return ""

    def extract_last_updated(self, ctx: PageContext) -> str:
        cells = ctx.soup.select("tr.noprint td")
        if cells:
            match = _DATE.search(cells[-1].get_text(" "))
            if match:
                return match.group(1)

        last = ""
        for cell in ctx.soup.select("table td"):
            match = _DATE.search(cell.get_text(" "))
            if match:
                last = match.group(1)
        return last

    def extract_photos(self, ctx: PageContext) -> List[str]:
        photos = [
            absolutize_url(a["href"], ctx.url)
            for a in ctx.soup.find_all("a", href=True)
            if _IMAGE_URL.search(a["href"])
        ]
        if not photos:
            for img in ctx.soup.find_all("img"):
                src = img.get("src") or img.get("data-src") or ""
                if src and _IMAGE_URL.search(src) and not _NOT_PHOTO.search(src):
                    photos.append(absolutize_url(src, ctx.url))
        return dedupe_preserving_order(photos)
