"""
Product URL extraction and link helpers.

Extraction is pure: no network, no store, no browser. Every test here works
on literal markup.
"""

from __future__ import annotations

from urllib.parse import urlparse

import pytest

from product_crawler.utils.parsing import (
    domain_of,
    extract_links,
    extract_product_urls,
    first_href,
    has_element,
    normalize_url,
)

MIXED_PAGE = """
<html><body>
  <a href="/dp/B09XYZ">Laptop</a>
  <a href="/dp/B09XYZ?ref=sr_1">Laptop again</a>
  <a href="/product/thinkpad-x1">ThinkPad</a>
  <a href="/item/12345/">Mouse</a>
  <a href="/p/9988776">Keyboard</a>
  <a href="/gp/product/B01ABC">Dock</a>
  <a href="/shop/monitor_27">Monitor</a>
  <link rel="stylesheet" href="/p/theme.css">
  <a href="/category/laptops">Laptops</a>
</body></html>
"""


def test_single_product_link_resolves_against_base() -> None:
    content = '<a href="/dp/B09XYZ">'
    assert extract_product_urls(content, "https://shop.test") == ["https://shop.test/dp/B09XYZ"]


def test_all_recognised_path_segments_are_found_in_order() -> None:
    urls = extract_product_urls(MIXED_PAGE, "https://shop.test/laptops?page=2")
    assert urls == [
        "https://shop.test/dp/B09XYZ",
        "https://shop.test/product/thinkpad-x1",
        "https://shop.test/item/12345",
        "https://shop.test/p/9988776",
        "https://shop.test/gp/product/B01ABC",
        "https://shop.test/shop/monitor_27",
    ]


def test_no_duplicates_and_every_url_on_base_host() -> None:
    base = "https://shop.test/c/electronics"
    urls = extract_product_urls(MIXED_PAGE * 3, base)
    assert len(urls) == len(set(urls))
    for url in urls:
        parsed = urlparse(url)
        assert (parsed.scheme, parsed.netloc) == ("https", "shop.test")


def test_extraction_is_idempotent() -> None:
    base = "https://shop.test"
    first = extract_product_urls(MIXED_PAGE, base)
    extract_product_urls("<a href='/dp/OTHER1'>", base)
    second = extract_product_urls(MIXED_PAGE, base)
    assert first == second


def test_absolute_links_on_other_hosts_are_rebased() -> None:
    content = '<a href="https://cdn.other.test/item/777">'
    assert extract_product_urls(content, "http://shop.test/a/b") == ["http://shop.test/item/777"]


@pytest.mark.parametrize(
    "content",
    [
        "",
        "<html><body>No products here</body></html>",
        '<img src="/p/banner.png">',
        '<a href="/products/">All products</a>',
    ],
)
def test_pattern_mismatch_yields_empty_list(content: str) -> None:
    assert extract_product_urls(content, "https://shop.test") == []


def test_extract_links_resolves_and_filters_schemes() -> None:
    html = """
    <a class="category-link" href="/c/phones#top">Phones</a>
    <a class="category-link" href="https://shop.test/c/tablets">Tablets</a>
    <a class="category-link" href="javascript:void(0)">Nope</a>
    <a class="category-link" href="/c/phones">Phones again</a>
    <a href="/c/ignored">Not a category</a>
    """
    links = extract_links(html, "https://shop.test/home", "a.category-link")
    assert links == ["https://shop.test/c/phones", "https://shop.test/c/tablets"]


def test_first_href_and_has_element() -> None:
    html = '<nav><a class="next-page" href="?page=2">Next</a></nav>'
    assert has_element(html, "a.next-page")
    assert not has_element(html, "a.prev-page")
    assert first_href(html, "https://shop.test/laptops", "a.next-page") == "https://shop.test/laptops?page=2"
    assert first_href(html, "https://shop.test/laptops", "a.prev-page") is None


def test_normalize_url_and_domain_of() -> None:
    assert normalize_url("https://shop.test/c/a?x=1#frag") == "https://shop.test/c/a?x=1"
    assert domain_of("https://shop.test:8443/c") == "shop.test:8443"
