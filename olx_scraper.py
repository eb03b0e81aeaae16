import argparse
import asyncio
import json
import os
import random
import re
import unicodedata
import urllib.parse
from typing import Any, Callable, Dict, List, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from olx_config import config
from olx_models import (
    Ad,
    AdAttrs,
    MissingFieldError,
    NoListingPagesError,
    PageResult,
    RegionResult,
    reduce_pages,
)
from tab_pool import TabPool

MAX_TABS = config.MAX_TABS

# --- DOM locators (opaque to the scraper, handed straight to Playwright) ---
AD_LIST_SELECTOR = "ul#ad-list"
AD_SECTION_SELECTOR = "ul#ad-list section"
NAME_SELECTOR = "h2"
PRICE_SELECTOR = "h3"
LINK_SELECTOR = "a"
REGION_SELECTOR = "xpath=//div[./p/@data-testid='ds-adcard-date']/p"
ATTR_SELECTORS = {
    "rooms": "span[aria-label*='quarto']",
    "sqr_meters": "span[aria-label*='metro']",
    "bathrooms": "span[aria-label*='banheiro']",
    "parking_lot": "span[aria-label*='garagem']",
}
PAGINATION_SELECTOR = "xpath=//div[@data-testid='paginationMobile']//p"
NEIGHBORHOODS_BUTTON_SELECTOR = "xpath=//button[div[text()[contains(., 'bairros / cidades')]]]"
NEIGHBORHOODS_DIALOG_SELECTOR = "div[role='dialog']"
NEIGHBORHOOD_LABEL_SELECTOR = "label span:nth-child(2) span:nth-child(1)"

# --- Scripts evaluated on matched nodes ---
TEXT_CONTENT = "(node) => node.textContent"
HREF = "(a) => a.href"
CLICK = "(element) => element.click()"
ALL_TEXT_CONTENT = "(elements) => elements.map((span) => span.textContent)"

PAGE_QUERY_PARAM = "o"
LISTING_VIEWPORT = {"width": 640, "height": 480}
NEIGHBORHOODS_VIEWPORT = {"width": 900, "height": 100}

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/138.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/16.1 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; WOW64) Gecko/20100101 Firefox/117.0",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/112.0.5615.49 Safari/537.36",
]

HEADERS_LIST = [
    {
        "referer": "https://www.olx.com.br/",
        "accept-language": "pt-BR,pt;q=0.9,en-US;q=0.8",
    },
    {
        "referer": "https://www.olx.com.br/",
        "accept-language": "pt-BR,pt;q=0.8,en;q=0.6",
    },
]


# --- Parsers ---
def parse_price(text: Optional[str]) -> Optional[int]:
    """Keeps only the digits, so 'R$ 1.250' becomes 1250. None when there are none."""
    if not text:
        return None
    digits = re.sub(r"[^\d]", "", text)
    return int(digits) if digits else None


def parse_leading_int(text: Optional[str]) -> Optional[int]:
    """Integer at the start of the text ('45m²' -> 45), None otherwise."""
    if not text:
        return None
    match = re.match(r"\s*([+-]?\d+)", text)
    return int(match.group(1)) if match else None


def parse_page_limit(text: Optional[str]) -> int:
    """Reads the total from the pagination label, e.g. '1 de 37' -> 37."""
    if not text or "de " not in text:
        return 0
    total = parse_leading_int(text.split("de ", 1)[1])
    return total if total is not None else 0


def build_page_url(link: str, page_number: int) -> str:
    """Sets the page-number query parameter, keeping any other parameters."""
    parsed = urllib.parse.urlparse(link)
    query = dict(urllib.parse.parse_qsl(parsed.query))
    query[PAGE_QUERY_PARAM] = str(page_number)
    return urllib.parse.urlunparse(parsed._replace(query=urllib.parse.urlencode(query)))


def slugify_neighborhood(name: str) -> str:
    """
    Turns a neighborhood display name into the slug OLX uses in its URLs.
    Args:
        name (str): Display name, e.g. 'São Paulo'.
    Returns:
        str: Lowercase, diacritic-free, hyphenated slug, e.g. 'sao-paulo'.
    """
    decomposed = unicodedata.normalize("NFD", name.lower())
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return re.sub(r"\s+", "-", stripped)


# --- Field extraction ---
async def get_selector(element, selector: str, default: Any = None,
                       transform: Optional[Callable[[Any], Any]] = None, script: str = TEXT_CONTENT) -> Any:
    """
    Returns the default value when the selector is not found or cannot be read.
    Args:
        element: Page or element handle to search inside.
        selector (str): Locator of the field.
        default: Value returned on any miss.
        transform: Optional function applied to the evaluated value; a None result
            also falls back to the default.
        script (str): JS function evaluated on the matched node.
    """
    try:
        node = await element.query_selector(selector)
        if node is None:
            return default
        value = await node.evaluate(script)
        if transform is not None:
            value = transform(value)
    except Exception:
        return default
    return default if value is None else value


async def require_field(element, selector: str, script: str = TEXT_CONTENT) -> Any:
    node = await element.query_selector(selector)
    if node is None:
        raise MissingFieldError(selector)
    return await node.evaluate(script)


async def extract_ad(section) -> Optional[Ad]:
    """Builds one Ad from its section, or None when a required field is missing."""
    try:
        name = (await require_field(section, NAME_SELECTOR)).strip()
        link = await require_field(section, LINK_SELECTOR, script=HREF)
        region = (await require_field(section, REGION_SELECTOR)).strip()
    except Exception as e:
        print(f"\n⚠️ Skipping ad: {e}")
        return None

    price = await get_selector(section, PRICE_SELECTOR, None, parse_price)
    attrs = {}
    for attr_name, selector in ATTR_SELECTORS.items():
        attrs[attr_name] = await get_selector(section, selector, None, parse_leading_int)

    return Ad(name=name, price=price, link=link, region=region, attrs=AdAttrs(**attrs))


async def extract_ads(tab, page_number: int) -> PageResult:
    sections = await tab.query_selector_all(AD_SECTION_SELECTOR)
    ads = []
    for section in sections:
        ad = await extract_ad(section)
        if ad is not None:
            ads.append(ad)
    return PageResult.from_ads(page_number, ads)


# --- Page fetching ---
async def get_page_ads(tab, link: str, page_number: int) -> PageResult:
    """
    Navigates a tab to one page of a listing and extracts its ads.
    A page that fails to load comes back empty, with the failure kind in ``error``.
    """
    page_url = build_page_url(link, page_number)
    try:
        await tab.goto(page_url, wait_until="domcontentloaded")
    except Exception as e:
        print(f"\n⚠️ Navigation error on page {page_number} ({page_url}): {e}")
        return PageResult.empty(page_number, error="navigation")

    try:
        await tab.wait_for_selector(AD_LIST_SELECTOR)
    except PlaywrightTimeoutError:
        print(f"\n⚠️ Timeout waiting for the ad list on page {page_number} ({page_url})")
        return PageResult.empty(page_number, error="timeout")
    except Exception as e:
        print(f"\n⚠️ Ad list never appeared on page {page_number} ({page_url}): {e}")
        return PageResult.empty(page_number, error="timeout")

    try:
        return await extract_ads(tab, page_number)
    except Exception as e:
        print(f"\n⚠️ Error extracting ads from page {page_number} ({page_url}): {e}")
        return PageResult.empty(page_number, error="extraction")


async def create_tab(browser, viewport: Optional[Dict[str, int]] = None):
    """Opens a new tab with a random user agent and the default timeout set."""
    user_agent = random.choice(USER_AGENTS)
    extra_headers = random.choice(HEADERS_LIST).copy()
    extra_headers["user-agent"] = user_agent

    tab = await browser.new_page(
        user_agent=user_agent,
        extra_http_headers=extra_headers,
        locale="pt-BR",
        viewport=viewport or LISTING_VIEWPORT,
    )
    tab.set_default_timeout(config.DEFAULT_TIMEOUT_MS)
    return tab


async def get_region_page_limit(tab) -> int:
    return await get_selector(tab, PAGINATION_SELECTOR, 0, parse_page_limit)


class PageProgress:
    def __init__(self, total: int, enabled: bool = True):
        self.total = total
        self.count = 0
        self.enabled = enabled
        self._lock = asyncio.Lock()

    async def tick(self) -> None:
        async with self._lock:
            self.count += 1
            if self.enabled:
                print(f"\rProgress: {self.count}/{self.total}", end="", flush=True)


# --- Region coordination ---
async def scrape_region(browser, link: str, max_tabs: int = MAX_TABS, show_progress: bool = True) -> RegionResult:
    """
    Collects every ad of a region using up to ``max_tabs`` tabs of ``browser``.
    Args:
        browser: An open Playwright browser.
        link (str): Listing URL of the region or sub-region.
        max_tabs (int): Upper bound on concurrently open tabs.
        show_progress (bool): Print a progress counter as pages finish.
    Returns:
        RegionResult: Ads in page order plus the cheapest and priciest ad.
    Raises:
        NoListingPagesError: No listing page could be collected.
    """
    first_tab = await create_tab(browser)
    try:
        await first_tab.goto(link, wait_until="domcontentloaded")
    except Exception as e:
        print(f"\n⚠️ Navigation error on the region page ({link}): {e}")
        total_pages = 0
    else:
        total_pages = await get_region_page_limit(first_tab)
    print(f"\n🌐 Found {total_pages} listing pages for {link}")

    pages: List[PageResult] = []
    if total_pages == 0:
        await first_tab.close()
    else:
        # the first tab always joins the pool, even when max_tabs is below 1
        pool = await TabPool.build(
            max(1, min(total_pages, max_tabs)),
            lambda: create_tab(browser),
            initial=[first_tab],
        )
        progress = PageProgress(total_pages, enabled=show_progress)

        async def fetch(page_number: int) -> PageResult:
            async with pool.tab() as tab:
                page_result = await get_page_ads(tab, link, page_number)
            await progress.tick()
            return page_result

        try:
            pages = await asyncio.gather(*(fetch(n) for n in range(1, total_pages + 1)))
        finally:
            await pool.close()

    if not pages:
        raise NoListingPagesError(link)

    region = reduce_pages(pages)
    print(f"\n✅ Collected {len(region.ads)} ads from {total_pages} pages of {link}")
    if region.failed_pages:
        print(f"\n⚠️ {len(region.failed_pages)} pages came back empty: {list(region.failed_pages)}")
    return region


async def extract_region(link: str, max_tabs: int = MAX_TABS, show_progress: bool = True) -> RegionResult:
    """Launches a browser, scrapes the region and always closes the browser.

    A region without listing pages, or whose region page cannot be opened,
    yields an empty result. Browser launch and tab creation errors propagate
    to the caller.
    """
    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=config.HEADLESS)
        try:
            return await scrape_region(browser, link, max_tabs=max_tabs, show_progress=show_progress)
        except NoListingPagesError as e:
            print(f"\n⚠️ {e}")
            return RegionResult.empty()
        finally:
            await browser.close()


# --- Neighborhoods ---
async def scrape_neighborhoods(browser, link: str) -> Dict[str, str]:
    tab = await create_tab(browser, viewport=NEIGHBORHOODS_VIEWPORT)
    try:
        await tab.goto(link, wait_until="domcontentloaded")

        neighborhoods_btn = await tab.wait_for_selector(NEIGHBORHOODS_BUTTON_SELECTOR)
        await neighborhoods_btn.scroll_into_view_if_needed()
        await neighborhoods_btn.evaluate(CLICK)

        container = await tab.wait_for_selector(NEIGHBORHOODS_DIALOG_SELECTOR)
        names = await container.eval_on_selector_all(NEIGHBORHOOD_LABEL_SELECTOR, ALL_TEXT_CONTENT)
    finally:
        await tab.close()

    neighborhoods = {}
    for name in names:
        name = (name or "").strip()
        if name:
            neighborhoods[name] = slugify_neighborhood(name)
    return neighborhoods


async def extract_neighborhoods(link: str) -> Dict[str, str]:
    """Maps every neighborhood name of a region to its slug; empty on failure."""
    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=config.HEADLESS)
        try:
            return await scrape_neighborhoods(browser, link)
        except Exception as e:
            print(f"\n⚠️ Could not extract neighborhoods from {link}: {e}")
            return {}
        finally:
            await browser.close()


# --- Output ---
def save_json(data, path: str) -> None:
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=4, ensure_ascii=False)
    print(f"\n💾 Saved {path}")


def save_ads_csv(region: RegionResult, path: str) -> None:
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    region.to_dataframe().to_csv(path, index=False)
    print(f"\n💾 Saved {len(region.ads)} ads to {path}")


def save_failed_pages(region: RegionResult, path: str) -> None:
    with open(path, "w") as f:
        f.write("\n".join(str(n) for n in region.failed_pages))
    print(f"\n⚠️ {len(region.failed_pages)} failed pages saved to {path}")


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Scrape OLX real-estate listings of a region.")
    parser.add_argument(
        "--region-link",
        default=config.REGION_LINK,
        help="Listing URL of the parent region (default: %(default)s).",
    )
    parser.add_argument(
        "--sub-region",
        default="",
        help="Neighborhood slug appended to the region link. Omit to scrape the whole region.",
    )
    parser.add_argument(
        "--max-tabs",
        type=positive_int,
        default=MAX_TABS,
        help="Maximum number of browser tabs fetching pages at once (default: %(default)s).",
    )
    parser.add_argument(
        "--output-dir",
        default=config.OUTPUT_DIR,
        help="Directory for the JSON/CSV outputs (default: %(default)s).",
    )
    parser.add_argument(
        "--skip-neighborhoods",
        action="store_true",
        help="Do not extract the neighborhood list of the region.",
    )
    parser.add_argument(
        "--csv",
        action="store_true",
        help="Also write the ads as a flat CSV file.",
    )
    return parser


async def main(argv: Optional[List[str]] = None) -> RegionResult:
    args = build_parser().parse_args(argv)

    if not args.skip_neighborhoods:
        print(f"\n🌐 Extracting neighborhoods of {args.region_link}")
        neighborhoods = await extract_neighborhoods(args.region_link)
        print(f"\n✅ Found {len(neighborhoods)} neighborhoods")
        save_json(neighborhoods, os.path.join(args.output_dir, "list.json"))

    link = args.region_link + args.sub_region
    print(f"\n{'='*20} Scraping {link} {'='*20}")
    region = await extract_region(link, max_tabs=args.max_tabs)

    save_json(region.to_dict(), os.path.join(args.output_dir, "output.json"))
    if args.csv:
        save_ads_csv(region, os.path.join(args.output_dir, "ads.csv"))
    if region.failed_pages:
        save_failed_pages(region, os.path.join(args.output_dir, "failed_pages.txt"))
    else:
        print("\n🎉 No failed pages!")
    return region


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n🛑 Script interrupted by user.")
    except Exception as e:
        print(f"\n💥 An unexpected error occurred: {e}")
        import traceback
        traceback.print_exc()


if __name__ == "__main__":
    run()
