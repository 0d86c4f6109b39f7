"""
CMS Detection

Sniffs the page source for platform signatures. The result is stored on
the profile (unless an operator locked the field) and shown alongside
install options.
"""

import re
from typing import List, Optional, Pattern, Tuple


def _generator(name: str) -> Pattern:
    return re.compile(rf'<meta\s+name=["\']generator["\']\s+content=["\']{name}', re.IGNORECASE)


CMS_SIGNATURES: List[Tuple[str, List[Pattern]]] = [
    ("WordPress", [
        re.compile(r'wp-content/', re.IGNORECASE),
        re.compile(r'wp-includes/', re.IGNORECASE),
        _generator("WordPress"),
        re.compile(r'wp-json', re.IGNORECASE),
    ]),
    ("Shopify", [
        re.compile(r'cdn\.shopify\.com', re.IGNORECASE),
        re.compile(r'Shopify\.theme', re.IGNORECASE),
        _generator("Shopify"),
    ]),
    ("Wix", [
        re.compile(r'static\.wixstatic\.com', re.IGNORECASE),
        _generator("Wix"),
        re.compile(r'wix-code-sdk', re.IGNORECASE),
    ]),
    ("Squarespace", [
        re.compile(r'static1\.squarespace\.com', re.IGNORECASE),
        _generator("Squarespace"),
        re.compile(r'squarespace-cdn', re.IGNORECASE),
    ]),
    ("Webflow", [
        re.compile(r'assets\.website-files\.com', re.IGNORECASE),
        _generator("Webflow"),
        re.compile(r'webflow\.js', re.IGNORECASE),
    ]),
    ("Drupal", [
        re.compile(r'/sites/default/files', re.IGNORECASE),
        _generator("Drupal"),
        re.compile(r'drupal\.js', re.IGNORECASE),
    ]),
    ("Joomla", [
        re.compile(r'/media/jui', re.IGNORECASE),
        _generator("Joomla"),
    ]),
    ("Ghost", [
        _generator("Ghost"),
        re.compile(r'ghost-url', re.IGNORECASE),
    ]),
    ("HubSpot", [
        re.compile(r'js\.hs-scripts\.com', re.IGNORECASE),
        re.compile(r'hs-banner\.com', re.IGNORECASE),
        _generator("HubSpot"),
    ]),
    ("Framer", [
        re.compile(r'framerusercontent\.com', re.IGNORECASE),
        re.compile(r'framer-motion', re.IGNORECASE),
    ]),
    ("GoDaddy", [
        re.compile(r'img1\.wsimg\.com', re.IGNORECASE),
        re.compile(r'godaddy\.com/website-builder', re.IGNORECASE),
    ]),
]


def detect_cms(html: str) -> Optional[str]:
    """Return the first matching CMS name, or None."""
    if not html:
        return None
    for name, patterns in CMS_SIGNATURES:
        if any(p.search(html) for p in patterns):
            return name
    return None
