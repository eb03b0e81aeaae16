"""
Data model for scraped OLX listings.

Every record is a frozen dataclass. A page produces one ``PageResult``; the
pages of a region are folded into one ``RegionResult`` by ``reduce_pages``.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd


class ScraperError(Exception):
    """Base class for scraper errors."""


class MissingFieldError(ScraperError, LookupError):
    """A required ad field could not be found inside its section."""

    def __init__(self, selector: str):
        super().__init__(f"required field not found: {selector}")
        self.selector = selector


class NoListingPagesError(ScraperError):
    """The coordinator collected zero listing pages for a region."""

    def __init__(self, link: str):
        super().__init__(f"no listing page was found for {link}")
        self.link = link


@dataclass(frozen=True)
class AdAttrs:
    rooms: Optional[int] = None
    sqr_meters: Optional[int] = None
    bathrooms: Optional[int] = None
    parking_lot: Optional[int] = None


@dataclass(frozen=True)
class Ad:
    name: str
    price: Optional[int]
    link: str
    region: str
    attrs: AdAttrs = field(default_factory=AdAttrs)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PriceExtreme:
    price: int
    link: str

    @classmethod
    def from_ad(cls, ad: Ad) -> "PriceExtreme":
        return cls(price=ad.price, link=ad.link)

    def to_dict(self) -> Dict[str, Any]:
        return {"price": self.price, "link": self.link}


def higher_of(current: Optional[PriceExtreme], candidate: Optional[PriceExtreme]) -> Optional[PriceExtreme]:
    """Keep ``current`` unless ``candidate`` is strictly more expensive.

    A missing extreme always loses to a present one, so ties keep whichever
    was seen first.
    """
    if candidate is None:
        return current
    if current is None or candidate.price > current.price:
        return candidate
    return current


def lower_of(current: Optional[PriceExtreme], candidate: Optional[PriceExtreme]) -> Optional[PriceExtreme]:
    """Keep ``current`` unless ``candidate`` is strictly cheaper."""
    if candidate is None:
        return current
    if current is None or candidate.price < current.price:
        return candidate
    return current


def _extreme_to_dict(extreme: Optional[PriceExtreme]) -> Optional[Dict[str, Any]]:
    return extreme.to_dict() if extreme is not None else None


@dataclass(frozen=True)
class PageResult:
    page_number: int
    ads: Tuple[Ad, ...] = ()
    higher_ad: Optional[PriceExtreme] = None
    lower_ad: Optional[PriceExtreme] = None
    # None on success, otherwise the kind of failure that emptied the page
    error: Optional[str] = None

    @classmethod
    def from_ads(cls, page_number: int, ads: Iterable[Ad]) -> "PageResult":
        ads = tuple(ads)
        higher_ad = lower_ad = None
        for ad in ads:
            if ad.price is None:
                continue
            candidate = PriceExtreme.from_ad(ad)
            higher_ad = higher_of(higher_ad, candidate)
            lower_ad = lower_of(lower_ad, candidate)
        return cls(page_number=page_number, ads=ads, higher_ad=higher_ad, lower_ad=lower_ad)

    @classmethod
    def empty(cls, page_number: int, error: Optional[str] = None) -> "PageResult":
        return cls(page_number=page_number, error=error)

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class RegionResult:
    ads: Tuple[Ad, ...] = ()
    higher_ad: Optional[PriceExtreme] = None
    lower_ad: Optional[PriceExtreme] = None
    failed_pages: Tuple[int, ...] = ()

    @classmethod
    def empty(cls) -> "RegionResult":
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "higher_ad": _extreme_to_dict(self.higher_ad),
            "lower_ad": _extreme_to_dict(self.lower_ad),
            "ads": [ad.to_dict() for ad in self.ads],
        }

    def to_dataframe(self) -> pd.DataFrame:
        """Flatten the ads into one row per ad, attributes as ``attrs.*`` columns."""
        columns = ["name", "price", "link", "region"] + [f"attrs.{name}" for name in AdAttrs.__dataclass_fields__]
        if not self.ads:
            return pd.DataFrame(columns=columns)
        df = pd.json_normalize([ad.to_dict() for ad in self.ads])
        return df[columns]


def reduce_pages(pages: Iterable[PageResult]) -> RegionResult:
    """Fold page results, in the order given, into one region result."""
    ads: List[Ad] = []
    failed_pages: List[int] = []
    higher_ad = lower_ad = None
    for page in pages:
        higher_ad = higher_of(higher_ad, page.higher_ad)
        lower_ad = lower_of(lower_ad, page.lower_ad)
        ads.extend(page.ads)
        if page.failed:
            failed_pages.append(page.page_number)
    return RegionResult(
        ads=tuple(ads),
        higher_ad=higher_ad,
        lower_ad=lower_ad,
        failed_pages=tuple(failed_pages),
    )
