from __future__ import annotations

import re
from typing import Dict, List
from urllib.parse import urljoin, urlparse, urlunparse

from bs4 import BeautifulSoup

# Path segment that marks an item detail page, followed by the item identifier.
# The identifier must end at a delimiter so "/p/abc" never matches inside "/p/abc.css".
PRODUCT_PATH_RE = re.compile(
    r"/(?:dp|gp/product|product|item|shop|p)/[A-Za-z0-9_-]+(?=[/?#\"'\s<>&]|$)"
)


def normalize_url(url: str) -> str:
    """
    Normalize URL by removing fragments.
    """
    parts = list(urlparse(url))
    parts[5] = ""  # strip fragment
    return urlunparse(parts)


def domain_of(url: str) -> str:
    return urlparse(url).netloc


def site_root(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def extract_product_urls(content: str, base_url: str) -> List[str]:
    """
    Find product detail paths in raw page markup and resolve them against
    base_url's scheme and host.

    The result keeps first-seen order and holds each URL once. Pure: the same
    content and base URL always give the same list.
    """
    root = site_root(base_url)
    found: Dict[str, None] = {}
    for match in PRODUCT_PATH_RE.finditer(content or ""):
        found.setdefault(urljoin(root, match.group(0)), None)
    return list(found)


def extract_links(html: str, base_url: str, selector: str = "a[href]") -> List[str]:
    """
    Extract absolute http(s) links from anchors matching selector, in document order.
    """
    soup = BeautifulSoup(html, "html.parser")
    out: Dict[str, None] = {}
    for a in soup.select(selector):
        href = a.get("href")
        if not href:
            continue
        absolute = normalize_url(urljoin(base_url, href))
        if urlparse(absolute).scheme in ("http", "https"):
            out.setdefault(absolute, None)
    return list(out)


def has_element(html: str, selector: str) -> bool:
    return BeautifulSoup(html, "html.parser").select_one(selector) is not None


def first_href(html: str, base_url: str, selector: str) -> str | None:
    """Absolute href of the first element matching selector, or None."""
    node = BeautifulSoup(html, "html.parser").select_one(selector)
    if node is None:
        return None
    href = node.get("href")
    if not href:
        return None
    return normalize_url(urljoin(base_url, href))
