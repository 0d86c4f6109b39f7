"""
Brand Asset Extraction

Pulls the site's real brand material out of its HTML and CSS so the
creative agents never work from placeholders:
- Logo and hero image URLs
- Most frequent brand colors and font families
- Headline, hero copy, navigation labels and calls to action
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass, field, asdict
from typing import Dict, Any, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

HEX_COLOR = re.compile(r'#(?:[0-9a-fA-F]{6}|[0-9a-fA-F]{3})\b')
FONT_FAMILY = re.compile(r'font-family\s*:\s*([^;}"]+)', re.IGNORECASE)

GENERIC_FONTS = {
    "serif", "sans-serif", "monospace", "cursive", "fantasy", "system-ui",
    "inherit", "initial", "unset", "-apple-system", "blinkmacsystemfont",
}
NEUTRAL_COLORS = {"#ffffff", "#000000"}

MAX_COLORS = 8
MAX_FONTS = 8
MAX_IMAGES = 20
MAX_NAV_ITEMS = 8


@dataclass
class BrandAssets:
    """Brand material extracted from a live page."""
    logo_url: Optional[str] = None
    hero_image_url: Optional[str] = None
    colors: List[str] = field(default_factory=list)
    fonts: List[str] = field(default_factory=list)
    images: List[str] = field(default_factory=list)
    nav_links: List[str] = field(default_factory=list)
    copy: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_creative_input(self) -> Dict[str, Any]:
        """Shape sent to the creative agents."""
        return {
            "logoUrl": self.logo_url,
            "heroImageUrl": self.hero_image_url,
            "colors": self.colors,
            "fonts": self.fonts,
            "navLinks": self.nav_links,
            "copy": self.copy,
        }


def _expand_hex(color: str) -> str:
    color = color.lower()
    if len(color) == 4:
        return "#" + "".join(ch * 2 for ch in color[1:])
    return color


def extract_colors(css: str) -> List[str]:
    """Most frequent non-neutral hex colors."""
    counts = Counter(_expand_hex(c) for c in HEX_COLOR.findall(css))
    return [c for c, _ in counts.most_common() if c not in NEUTRAL_COLORS][:MAX_COLORS]


def extract_fonts(css: str) -> List[str]:
    """First named family of each font-family declaration, deduplicated."""
    fonts: List[str] = []
    for declaration in FONT_FAMILY.findall(css):
        for family in declaration.split(","):
            name = family.strip().strip("'\"").strip()
            if name and name.lower() not in GENERIC_FONTS and not name.startswith("var("):
                if name not in fonts:
                    fonts.append(name)
                break
    return fonts[:MAX_FONTS]


def _text(node) -> str:
    return re.sub(r'\s+', ' ', node.get_text(" ", strip=True)) if node else ""


def extract_assets(html: str, css: str, url: str) -> BrandAssets:
    """
    Extract brand assets from a fetched page.

    Args:
        html: Page HTML
        css: Inline and linked CSS
        url: Final page URL (for resolving relative links)

    Returns:
        BrandAssets (empty fields when nothing usable was found)
    """
    soup = BeautifulSoup(html, "html.parser")

    images = []
    for img in soup.find_all("img"):
        src = img.get("src") or img.get("data-src")
        if src and not src.startswith("data:"):
            images.append(urljoin(url, src))
    images = list(dict.fromkeys(images))[:MAX_IMAGES]

    logo_url = None
    for img in soup.find_all("img"):
        hints = " ".join([img.get("alt", ""), img.get("src", ""), " ".join(img.get("class", []))]).lower()
        src = img.get("src")
        if "logo" in hints and src and not src.startswith("data:"):
            logo_url = urljoin(url, src)
            break
    if logo_url is None:
        header_img = soup.select_one("header img[src]")
        if header_img and not header_img["src"].startswith("data:"):
            logo_url = urljoin(url, header_img["src"])

    hero_image_url = None
    og_image = soup.find("meta", attrs={"property": "og:image"})
    if og_image and og_image.get("content"):
        hero_image_url = urljoin(url, og_image["content"])
    else:
        hero_image_url = next((src for src in images if src != logo_url), None)

    nav_links = []
    for link in soup.select("nav a"):
        label = _text(link)
        if label and len(label) < 50 and label not in nav_links:
            nav_links.append(label)
    nav_links = nav_links[:MAX_NAV_ITEMS]

    copy: Dict[str, Any] = {}
    if soup.title and _text(soup.title):
        copy["title"] = _text(soup.title)
    description = soup.find("meta", attrs={"name": "description"})
    if description and description.get("content"):
        copy["description"] = description["content"].strip()
    h1 = soup.find("h1")
    if _text(h1):
        copy["headline"] = _text(h1)
    hero = soup.find("header") or soup.find("section")
    hero_paragraph = hero.find("p") if hero else None
    if _text(hero_paragraph):
        copy["heroText"] = _text(hero_paragraph)
    ctas = [
        _text(node) for node in soup.select("a.btn, a.button, button, a[class*=cta]")
        if _text(node) and len(_text(node)) < 40
    ]
    if ctas:
        copy["ctas"] = list(dict.fromkeys(ctas))[:5]
    if nav_links:
        copy["navItems"] = nav_links

    assets = BrandAssets(
        logo_url=logo_url,
        hero_image_url=hero_image_url,
        colors=extract_colors(css + "\n" + html),
        fonts=extract_fonts(css),
        images=images,
        nav_links=nav_links,
        copy=copy,
    )
    logger.debug(
        f"Extracted assets from {url}: {len(assets.colors)} colors, "
        f"{len(assets.fonts)} fonts, {len(assets.images)} images"
    )
    return assets
