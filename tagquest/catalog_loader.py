"""
Catalog Loader Module
Reads Shopify product CSV exports into Product records
"""
import logging
from pathlib import Path
from typing import Iterable, List

import pandas as pd

from .exceptions import CatalogLoadError
from .models import Product
from .tag_parser import parse_tags


REQUIRED_COLUMNS = ('handle', 'tags')


def _safe_str(value) -> str:
    if pd.isna(value):
        return ''
    return str(value).strip()


class CatalogLoader:
    """Builds the catalog from one or more Shopify export files"""

    def __init__(self, logger=None):
        """
        Initialize the loader

        Args:
            logger: Logger instance
        """
        self.logger = logger or logging.getLogger('tagquest.catalog_loader')

    def _read_file(self, path: Path) -> pd.DataFrame:
        try:
            df = pd.read_csv(path, dtype=str, keep_default_na=False, low_memory=False)
        except FileNotFoundError as e:
            raise CatalogLoadError(f"Catalog file not found: {path}") from e
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            raise CatalogLoadError(f"Could not read catalog file {path}: {e}") from e

        # Shopify headers are title case but hand-edited exports vary
        columns = {c: c.strip().lower() for c in df.columns}
        df = df.rename(columns=columns)
        missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
        if missing:
            raise CatalogLoadError(
                f"{path} is missing required column(s): {', '.join(c.title() for c in missing)}"
            )
        return df

    def load(self, paths: Iterable) -> List[Product]:
        """
        Load products from CSV exports

        Variant rows repeat the handle; only the first row per handle is
        kept, across all files.

        Args:
            paths: CSV file paths

        Returns:
            List[Product]: One product per distinct handle, in file order
        """
        products: List[Product] = []
        seen = set()

        for path in paths:
            path = Path(path)
            self.logger.info(f"Loading catalog from: {path}")
            df = self._read_file(path)

            added = 0
            for _, row in df.iterrows():
                handle = _safe_str(row.get('handle', ''))
                if not handle or handle in seen:
                    continue
                seen.add(handle)

                raw_tags = _safe_str(row.get('tags', ''))
                parsed = parse_tags(raw_tags)
                products.append(Product(
                    handle=handle,
                    title=_safe_str(row.get('title', '')),
                    vendor=_safe_str(row.get('vendor', '')),
                    existing_genre=parsed.genre,
                    existing_subgenre=parsed.subgenre,
                    existing_decade=parsed.decade,
                    tags=raw_tags,
                ))
                added += 1

            self.logger.info(f"Loaded {added} products from {path.name}")

        self.logger.info(f"Catalog contains {len(products)} products")
        return products
