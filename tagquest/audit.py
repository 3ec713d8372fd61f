"""
Catalog Audit Module
Tag coverage reports for a catalog and certainty tiers for a session
"""
import csv
import logging
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pandas as pd

from .models import Product
from .question_generator import percent
from .tag_parser import DECADE_PATTERN, GENRE_PREFIX, parse_tags, split_tags
from .taxonomy import Taxonomy


logger = logging.getLogger('tagquest.audit')

AUDIT_FILTERS = ('all', 'complete', 'missing-genre', 'missing-subgenre', 'missing-decade', 'missing-all')

EXPORT_COLUMNS = ['Handle', 'Title', 'Vendor', 'Current Tags']


@dataclass
class AuditedTags:
    genre: Optional[str] = None
    subgenre: Optional[str] = None
    decade: Optional[str] = None
    all_tags: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)


@dataclass
class AuditRow:
    product: Product
    tags: AuditedTags

    @property
    def has_genre(self) -> bool:
        return bool(self.tags.genre)

    @property
    def has_subgenre(self) -> bool:
        return bool(self.tags.subgenre)

    @property
    def has_decade(self) -> bool:
        return bool(self.tags.decade)

    @property
    def is_complete(self) -> bool:
        return self.has_genre and self.has_subgenre and self.has_decade

    @property
    def is_empty(self) -> bool:
        return not (self.has_genre or self.has_subgenre or self.has_decade)


@dataclass
class AuditReport:
    rows: List[AuditRow]
    stats: Dict[str, int]


def audit_tags(raw, taxonomy: Taxonomy) -> AuditedTags:
    """
    Parse a tag field and note anything outside the taxonomy

    Genres are returned in the taxonomy's spelling when they match one
    case-insensitively; unknown genres and decade codes are kept and noted.

    Args:
        raw: Tag field
        taxonomy: Allowed vocabulary

    Returns:
        AuditedTags: Parsed values, all tokens and notes
    """
    parsed = parse_tags(raw)
    tokens = split_tags(raw)
    notes = []

    genre = parsed.genre
    if genre:
        canonical = taxonomy.canonical_genre(genre)
        if canonical:
            genre = canonical
        else:
            notes.append(f'Non-standard genre: "{genre}"')

    for token in tokens:
        if token.lower().startswith(GENRE_PREFIX):
            continue
        if DECADE_PATTERN.match(token) and not taxonomy.is_valid_decade(token):
            notes.append(f'Non-standard decade format: "{token}"')

    return AuditedTags(genre=genre, subgenre=parsed.subgenre, decade=parsed.decade,
                       all_tags=tokens, notes=notes)


def audit_catalog(products: Iterable[Product], taxonomy: Taxonomy) -> AuditReport:
    """Audit every product's raw tag field and count coverage."""
    rows = [AuditRow(product=p, tags=audit_tags(p.tags, taxonomy)) for p in products]

    stats = {
        'total': len(rows),
        'with_genre': sum(1 for r in rows if r.has_genre),
        'with_subgenre': sum(1 for r in rows if r.has_subgenre),
        'with_decade': sum(1 for r in rows if r.has_decade),
        'complete': sum(1 for r in rows if r.is_complete),
        'missing_all': sum(1 for r in rows if r.is_empty),
        'missing_genre_only': sum(1 for r in rows if not r.has_genre and r.has_subgenre and r.has_decade),
        'missing_subgenre_only': sum(1 for r in rows if r.has_genre and not r.has_subgenre and r.has_decade),
        'missing_decade_only': sum(1 for r in rows if r.has_genre and r.has_subgenre and not r.has_decade),
        'with_notes': sum(1 for r in rows if r.tags.notes),
    }
    logger.info(f"Audited {stats['total']} products: {stats['complete']} complete, {stats['missing_all']} untagged")
    return AuditReport(rows=rows, stats=stats)


def filter_products(report: AuditReport, filter_name: str = 'all', query: str = '') -> List[AuditRow]:
    if filter_name not in AUDIT_FILTERS:
        raise ValueError(f"Unknown audit filter '{filter_name}', expected one of {AUDIT_FILTERS}")

    checks = {
        'all': lambda r: True,
        'complete': lambda r: r.is_complete,
        'missing-genre': lambda r: not r.has_genre,
        'missing-subgenre': lambda r: not r.has_subgenre,
        'missing-decade': lambda r: not r.has_decade,
        'missing-all': lambda r: r.is_empty,
    }
    rows = [r for r in report.rows if checks[filter_name](r)]

    if query:
        q = query.lower()
        rows = [
            r for r in rows
            if q in r.product.handle.lower() or q in r.product.title.lower() or q in r.product.vendor.lower()
        ]
    return rows


def verification_sample(report: AuditReport, per_bucket: int = 5, rng: Optional[random.Random] = None) -> List[AuditRow]:
    """
    Pick a spot-check sample across coverage buckets

    Draws up to per_bucket rows each from complete, partially tagged,
    untagged and noted products, without repeating a handle.
    """
    rng = rng or random.Random()
    buckets = [
        [r for r in report.rows if r.is_complete],
        [r for r in report.rows if not r.is_complete and not r.is_empty],
        [r for r in report.rows if r.is_empty],
        [r for r in report.rows if r.tags.notes],
    ]

    sample: List[AuditRow] = []
    seen = set()
    for bucket in buckets:
        shuffled = list(bucket)
        rng.shuffle(shuffled)
        for row in shuffled[:per_bucket]:
            if row.product.handle not in seen:
                seen.add(row.product.handle)
                sample.append(row)
    return sample


def export_missing(products: Iterable[Product], tag_type: str, output_path) -> int:
    """
    Write the products lacking an existing value for tag_type to CSV

    Returns:
        int: Number of rows written
    """
    missing = [p for p in products if not p.existing_value(tag_type)]
    df = pd.DataFrame(
        [[p.handle, p.title, p.vendor, p.tags] for p in missing],
        columns=EXPORT_COLUMNS,
    )
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=False, quoting=csv.QUOTE_ALL)
    logger.info(f"Exported {len(missing)} products missing {tag_type} to {output_path}")
    return len(missing)


def _tier_counts(confidences: List[int]) -> Dict[str, int]:
    counts = {'total': len(confidences), 'certain': 0, 'high': 0, 'medium': 0, 'low': 0, 'none': 0}
    for pct in confidences:
        if pct == 100:
            counts['certain'] += 1
        elif pct >= 80:
            counts['high'] += 1
        elif pct >= 50:
            counts['medium'] += 1
        elif pct > 0:
            counts['low'] += 1
        else:
            counts['none'] += 1
    total = counts['total']
    counts['progress'] = percent(counts['certain'] + counts['high'], total)
    return counts


def certainty_stats(products: Iterable[Product], store) -> Dict[str, Dict[str, int]]:
    """
    Count products per confidence tier for genre and decade

    Tiers: certain (100), high (80+), medium (50+), low (above 0), none.
    Progress is the share of certain and high products.
    """
    products = list(products)
    return {
        tag_type: _tier_counts([store.confidence(p.handle, tag_type) for p in products])
        for tag_type in ('genre', 'decade')
    }
