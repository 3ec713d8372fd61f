"""
Tag Parser Module
Extracts genre, subgenre and decade labels from a Shopify tag field
"""
import re
from dataclasses import dataclass
from typing import List, Optional


GENRE_PREFIX = 'genre parent:'
SUBGENRE_PREFIX = 'subgenre:'

# "80C", "2000c" - two to four digits and a single c
DECADE_PATTERN = re.compile(r'^\d{2,4}[cC]$')


@dataclass(frozen=True)
class ParsedTags:
    genre: Optional[str] = None
    subgenre: Optional[str] = None
    decade: Optional[str] = None


def split_tags(raw) -> List[str]:
    """Split a comma delimited tag string into trimmed, non-empty tokens."""
    if not isinstance(raw, str):
        return []
    return [t.strip() for t in raw.split(',') if t.strip()]


def _prefixed_value(token: str, prefix: str) -> Optional[str]:
    if token.lower().startswith(prefix):
        return token[len(prefix):].strip() or None
    return None


def parse_tags(raw) -> ParsedTags:
    """
    Parse a raw tag string into its genre, subgenre and decade

    When several tokens match the same category the last one wins. Anything
    that is not a string parses to an empty result.

    Args:
        raw: Tag field, e.g. "Vinyl, Genre Parent: Jazz, 60C"

    Returns:
        ParsedTags: Extracted labels, each possibly None
    """
    genre = subgenre = decade = None

    for token in split_tags(raw):
        value = _prefixed_value(token, GENRE_PREFIX)
        if value:
            genre = value
            continue

        value = _prefixed_value(token, SUBGENRE_PREFIX)
        if value:
            subgenre = value
            continue

        if DECADE_PATTERN.match(token):
            decade = token.upper()

    return ParsedTags(genre=genre, subgenre=subgenre, decade=decade)
