"""
Music Taxonomy Module
Loads the allowed genre and decade vocabulary from taxonomy.json
"""
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .exceptions import TaxonomyError


@dataclass
class Taxonomy:
    """Allowed genre names and decade codes, plus the tag prefixes used in Shopify."""
    genres: List[str] = field(default_factory=list)
    decades: List[str] = field(default_factory=list)
    genre_prefix: str = 'Genre Parent:'
    subgenre_prefix: str = 'subgenre:'

    def canonical_genre(self, value: str) -> Optional[str]:
        """Return the taxonomy spelling of a genre, matched case-insensitively."""
        if not value:
            return None
        wanted = value.strip().lower()
        for genre in self.genres:
            if genre.lower() == wanted:
                return genre
        return None

    def is_valid_decade(self, code: str) -> bool:
        return bool(code) and (code in self.decades or code.lower() in self.decades)

    def genre_tag(self, value: str) -> str:
        """Shopify tag for a genre, e.g. "Genre Parent: Jazz"."""
        return f"{self.genre_prefix} {self.canonical_genre(value) or value.strip()}"

    def decade_tag(self, code: str) -> str:
        """Shopify tag for a decade in the taxonomy's own casing."""
        for decade in self.decades:
            if decade.lower() == (code or '').strip().lower():
                return decade
        return (code or '').strip()


def load_taxonomy(path) -> Taxonomy:
    """
    Load taxonomy.json

    Args:
        path: Path to the taxonomy file

    Returns:
        Taxonomy: Parsed vocabulary
    """
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise TaxonomyError(f"Taxonomy file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise TaxonomyError(f"Invalid JSON in taxonomy file {path}: {e}") from e

    genre = data.get('genre', {})
    decade = data.get('decade', {})
    if not isinstance(genre.get('tags', []), list) or not isinstance(decade.get('tags', []), list):
        raise TaxonomyError(f"Taxonomy file {path} must list genre and decade tags")

    return Taxonomy(
        genres=list(genre.get('tags', [])),
        decades=list(decade.get('tags', [])),
        genre_prefix=genre.get('prefix', 'Genre Parent:'),
        subgenre_prefix=data.get('subgenre', {}).get('prefix', 'subgenre:'),
    )
