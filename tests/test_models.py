from olx_models import (
    Ad,
    AdAttrs,
    PageResult,
    PriceExtreme,
    RegionResult,
    higher_of,
    lower_of,
    reduce_pages,
)


def ad(price, link=None, name="Casa"):
    return Ad(name=name, price=price, link=link or f"https://pe.olx.com.br/ad/{price}", region="Recife")


def page(page_number, prices):
    return PageResult.from_ads(page_number, [
        ad(price, link=f"https://pe.olx.com.br/ad/{page_number}-{i}") for i, price in enumerate(prices)
    ])


def test_page_extremes_over_priced_ads():
    result = PageResult.from_ads(1, [ad(100), ad(None), ad(50), ad(200)])
    assert result.higher_ad == PriceExtreme(200, "https://pe.olx.com.br/ad/200")
    assert result.lower_ad == PriceExtreme(50, "https://pe.olx.com.br/ad/50")
    assert len(result.ads) == 4


def test_page_without_priced_ads_has_no_extremes():
    result = PageResult.from_ads(1, [ad(None), ad(None)])
    assert result.higher_ad is None
    assert result.lower_ad is None
    assert len(result.ads) == 2


def test_page_ties_keep_first_seen():
    result = PageResult.from_ads(1, [ad(100, link="first"), ad(100, link="second")])
    assert result.higher_ad.link == "first"
    assert result.lower_ad.link == "first"


def test_missing_extreme_loses_to_present_one():
    present = PriceExtreme(10, "x")
    assert higher_of(None, present) is present
    assert higher_of(present, None) is present
    assert lower_of(None, present) is present
    assert lower_of(present, None) is present
    assert higher_of(None, None) is None


def test_reduce_three_pages():
    region = reduce_pages([page(1, [100, 50, 200]), page(2, [None, 300]), page(3, [150])])
    assert region.higher_ad.price == 300
    assert region.lower_ad.price == 50
    assert region.higher_ad.link == "https://pe.olx.com.br/ad/2-1"
    assert region.lower_ad.link == "https://pe.olx.com.br/ad/1-1"


def test_reduce_preserves_page_then_in_page_order():
    pages = [page(1, [1, 2]), page(2, []), page(3, [3, None, 4])]
    region = reduce_pages(pages)
    assert len(region.ads) == sum(len(p.ads) for p in pages)
    assert [a.link for a in region.ads] == [a.link for p in pages for a in p.ads]


def test_reduce_ties_across_pages_keep_earliest_page():
    region = reduce_pages([page(1, [300, 10]), page(2, [300, 10])])
    assert region.higher_ad.link == "https://pe.olx.com.br/ad/1-0"
    assert region.lower_ad.link == "https://pe.olx.com.br/ad/1-1"


def test_reduce_skips_empty_first_page():
    region = reduce_pages([PageResult.empty(1, error="timeout"), page(2, [70])])
    assert region.higher_ad.price == 70
    assert region.lower_ad.price == 70
    assert region.failed_pages == (1,)


def test_reduce_nothing_is_empty():
    assert reduce_pages([]) == RegionResult.empty()


def test_region_to_dict_shape():
    region = reduce_pages([PageResult.from_ads(1, [
        Ad("Apto", 1200, "https://pe.olx.com.br/ad/9", "Recife, Graças", AdAttrs(rooms=2, sqr_meters=60)),
    ])])
    assert region.to_dict() == {
        "higher_ad": {"price": 1200, "link": "https://pe.olx.com.br/ad/9"},
        "lower_ad": {"price": 1200, "link": "https://pe.olx.com.br/ad/9"},
        "ads": [{
            "name": "Apto",
            "price": 1200,
            "link": "https://pe.olx.com.br/ad/9",
            "region": "Recife, Graças",
            "attrs": {"rooms": 2, "sqr_meters": 60, "bathrooms": None, "parking_lot": None},
        }],
    }


def test_empty_region_to_dict():
    assert RegionResult.empty().to_dict() == {"higher_ad": None, "lower_ad": None, "ads": []}


def test_region_dataframe_flattens_attrs():
    region = reduce_pages([page(1, [100, None])])
    df = region.to_dataframe()
    assert list(df.columns) == [
        "name", "price", "link", "region",
        "attrs.rooms", "attrs.sqr_meters", "attrs.bathrooms", "attrs.parking_lot",
    ]
    assert len(df) == 2
    assert df["link"].tolist() == ["https://pe.olx.com.br/ad/1-0", "https://pe.olx.com.br/ad/1-1"]


def test_empty_region_dataframe_keeps_columns():
    df = RegionResult.empty().to_dataframe()
    assert df.empty
    assert "attrs.rooms" in df.columns
