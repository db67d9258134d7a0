"""Text normalization and query parsing for area name matching."""
import re
import unicodedata
from typing import Set

from osm_areas.core.models import ParsedQuery

POSTAL_ONLY_PATTERN = re.compile(r"^\d{2,10}$", re.ASCII)
LEADING_DIGIT_PATTERN = re.compile(r"^\d", re.ASCII)
# Combining diacritical marks block; other scripts keep their marks
COMBINING_DIACRITICS_PATTERN = re.compile("[\u0300-\u036f]")


def normalize_text(text: str) -> str:
    """
    Normalize text for matching: lowercase, strip diacritics, trim.

    Args:
        text: Input text string

    Returns:
        Normalized text string ("Kivistö" -> "kivisto")
    """
    if not text:
        return ""

    text = text.lower()

    # Unicode normalization
    text = unicodedata.normalize("NFD", text)
    text = COMBINING_DIACRITICS_PATTERN.sub("", text)

    return text.strip()


def generate_ngrams(text: str, n: int = 3) -> Set[str]:
    """
    Character n-grams of a string padded with n-1 spaces on each side.

    Args:
        text: Input string
        n: Gram length

    Returns:
        Set of n-gram strings
    """
    padded = " " * (n - 1) + text + " " * (n - 1)
    return {padded[i:i + n] for i in range(len(padded) - n + 1)}


def index_trigrams(text: str) -> Set[str]:
    """Unpadded lowercase trigrams used by the search index (empty below 3 chars)."""
    text = (text or "").lower()
    return {text[i:i + 3] for i in range(len(text) - 2)}


def parse_query(query: str) -> ParsedQuery:
    """
    Split a search query into name and postal-code fragments.

    A trailing token starting with a digit is the postal part ("Kallio 00530"),
    otherwise a leading one is ("00530 Kallio"). A query made only of 2-10
    digits is postal-only.
    """
    trimmed = query.strip()
    tokens = trimmed.split()

    name_part = None
    postal_part = None

    if len(tokens) > 1:
        if LEADING_DIGIT_PATTERN.match(tokens[-1]):
            postal_part = tokens[-1]
            name_part = " ".join(tokens[:-1])
        elif LEADING_DIGIT_PATTERN.match(tokens[0]):
            postal_part = tokens[0]
            name_part = " ".join(tokens[1:])

    is_postal_only = not name_part and bool(POSTAL_ONLY_PATTERN.match(trimmed))
    if is_postal_only:
        postal_part = trimmed

    return ParsedQuery(
        full_query=trimmed,
        name_part=name_part,
        postal_part=postal_part,
        is_postal_only=is_postal_only,
    )
