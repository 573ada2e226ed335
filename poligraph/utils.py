"""Utility functions for slugs, source publishers and dates."""

import re
import unicodedata
from datetime import date, datetime
from typing import Callable, Optional
from urllib.parse import urlparse

from .error_handling import SlugExhaustedError

UNVERIFIED_PREFIX = "[À VÉRIFIER] "

_UNVERIFIED_RE = re.compile(r"^\[À VÉRIFIER\]\s*", re.IGNORECASE)
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_URL_DATE_RE = re.compile(r"/((?:19|20)\d{2})/(\d{2})/(\d{2})(?:/|$)")

DEFAULT_SLUG = "affaire"

PRESS_PUBLISHERS = {
    "lemonde.fr": "Le Monde",
    "liberation.fr": "Libération",
    "mediapart.fr": "Mediapart",
    "lefigaro.fr": "Le Figaro",
    "francetvinfo.fr": "France Info",
    "bfmtv.com": "BFM TV",
    "leparisien.fr": "Le Parisien",
    "20minutes.fr": "20 Minutes",
    "lexpress.fr": "L'Express",
    "lepoint.fr": "Le Point",
    "nouvelobs.com": "L'Obs",
    "europe1.fr": "Europe 1",
    "rtl.fr": "RTL",
    "rfi.fr": "RFI",
}


def strip_accents(text: str) -> str:
    """Remove combining diacritics (é -> e)."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def generate_slug(text: str, max_length: int = 120) -> str:
    """Build a URL-safe slug from a title.

    Args:
        text: Title to slugify
        max_length: Maximum slug length

    Returns:
        Lowercase ASCII slug, never empty
    """
    slug = _NON_ALNUM_RE.sub("-", strip_accents(text.lower())).strip("-")
    slug = slug[:max_length].rstrip("-")
    return slug or DEFAULT_SLUG


def unique_slug(
    title: str,
    exists: Callable[[str], bool],
    max_length: int = 120,
    max_attempts: int = 500,
) -> str:
    """Find a free slug for a title, appending -2, -3, ... on collision.

    Args:
        title: Affair title
        exists: Predicate telling whether a slug is already taken
        max_length: Maximum slug length, suffix included
        max_attempts: Number of slugs tried before giving up

    Returns:
        A slug for which ``exists`` returned False

    Raises:
        SlugExhaustedError: If every attempted slug is taken
    """
    base_slug = generate_slug(title, max_length)
    if not exists(base_slug):
        return base_slug

    for counter in range(2, max_attempts + 1):
        suffix = f"-{counter}"
        truncated = base_slug[: max_length - len(suffix)].rstrip("-")
        slug = f"{truncated}{suffix}"
        if not exists(slug):
            return slug

    raise SlugExhaustedError(base_slug, max_attempts)


def extract_publisher_from_url(url: str) -> str:
    """Name the publisher of a press URL.

    Known French outlets get their display name, anything else its bare
    hostname. Unparseable URLs give "Source inconnue".
    """
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return "Source inconnue"
    if not hostname:
        return "Source inconnue"
    if hostname.startswith("www."):
        hostname = hostname[4:]
    return PRESS_PUBLISHERS.get(hostname, hostname)


def extract_date_from_url(url: str) -> Optional[date]:
    """Publication date from a /YYYY/MM/DD/ path segment, if any."""
    match = _URL_DATE_RE.search(url)
    if not match:
        return None
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse a YYYY-MM-DD string, returning None when absent or invalid."""
    if not value:
        return None
    try:
        return datetime.strptime(value.strip()[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


def strip_unverified_prefix(title: str) -> str:
    """Remove a leading "[À VÉRIFIER]" marker."""
    return _UNVERIFIED_RE.sub("", title).strip()


def with_unverified_prefix(text: str) -> str:
    if text.startswith(UNVERIFIED_PREFIX):
        return text
    return f"{UNVERIFIED_PREFIX}{text}"


def clamp_confidence(value) -> int:
    """Coerce a confidence score into the 0..100 integer range."""
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, score))
