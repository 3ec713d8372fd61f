"""
Certainty Store Module
Per-product, per-tag-type record of the current value, its confidence and its source
"""
import logging
from typing import Dict, Iterable, Iterator, List, Optional

from .models import TAG_TYPES, CertaintyEntry, CertaintySource, Product, ProductCertainty


logger = logging.getLogger('tagquest.certainty_store')


class CertaintyStore:
    """
    In-memory certainty table for one session.

    Rule application goes through ``offer`` which only ever raises
    confidence. Nothing here is locked; concurrent sessions each own a
    separate store.
    """

    def __init__(self):
        self._records: Dict[str, ProductCertainty] = {}

    @classmethod
    def seed(cls, products: Iterable[Product]) -> 'CertaintyStore':
        """
        Build a store whose entries come from the catalog's existing tags

        Args:
            products: Catalog products

        Returns:
            CertaintyStore: Every existing tag at 100% with source "existing"
        """
        store = cls()
        for product in products:
            record = store.record(product.handle)
            for tag_type in TAG_TYPES:
                value = product.existing_value(tag_type)
                if value:
                    record.set(tag_type, CertaintyEntry(value, 100, CertaintySource.EXISTING))
        logger.debug(f"Seeded certainty for {len(store)} products")
        return store

    def record(self, handle: str) -> ProductCertainty:
        """Return the record for handle, creating an empty one if needed."""
        record = self._records.get(handle)
        if record is None:
            record = ProductCertainty()
            self._records[handle] = record
        return record

    def get(self, handle: str, tag_type: str) -> Optional[CertaintyEntry]:
        record = self._records.get(handle)
        return record.get(tag_type) if record else None

    def confidence(self, handle: str, tag_type: str) -> int:
        entry = self.get(handle, tag_type)
        return entry.confidence_percent if entry else 0

    def offer(self, handle: str, tag_type: str, entry: CertaintyEntry) -> bool:
        """
        Store entry only if it improves on what is already there

        Args:
            handle: Product handle
            tag_type: genre, subgenre or decade
            entry: Candidate entry

        Returns:
            bool: True when the store changed
        """
        current = self.get(handle, tag_type)
        if current is not None and current.confidence_percent >= entry.confidence_percent:
            return False
        self.record(handle).set(tag_type, entry)
        return True

    def set_manual(self, handle: str, tag_type: str, value: str, confidence_percent: int = 100) -> CertaintyEntry:
        """Operator override; replaces the slot regardless of its confidence."""
        entry = CertaintyEntry(value, confidence_percent, CertaintySource.MANUAL)
        self.record(handle).set(tag_type, entry)
        return entry

    def clear(self, handle: str, tag_type: str):
        record = self._records.get(handle)
        if record:
            record.set(tag_type, None)

    def restore(self, records: Iterable[Dict]):
        """
        Overlay persisted entries onto the store

        Each record is a dict with handle, tagType (or tag_type), value, pct
        and source keys, as produced by ``snapshot``. Saved entries replace
        whatever is in the slot. Malformed records are skipped with a warning.
        """
        restored = 0
        for item in records:
            tag_type = item.get('tagType') or item.get('tag_type')
            try:
                if tag_type not in TAG_TYPES:
                    raise ValueError(f"unknown tag type {tag_type!r}")
                entry = CertaintyEntry(item['value'], int(item['pct']), item['source'])
                self.record(item['handle']).set(tag_type, entry)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping invalid saved certainty {item!r}: {e}")
                continue
            restored += 1
        logger.debug(f"Restored {restored} saved certainty entries")

    def snapshot(self) -> List[Dict]:
        """Flatten the store into persistable records, skipping empty slots."""
        rows = []
        for handle, record in self._records.items():
            for tag_type in TAG_TYPES:
                entry = record.get(tag_type)
                if entry is not None:
                    rows.append({'handle': handle, 'tagType': tag_type, **entry.to_dict()})
        return rows

    def entries(self, source: Optional[CertaintySource] = None) -> Iterator:
        """Yield (handle, tag_type, entry) triples, optionally for one source."""
        for handle, record in self._records.items():
            for tag_type in TAG_TYPES:
                entry = record.get(tag_type)
                if entry is not None and (source is None or entry.source == source):
                    yield handle, tag_type, entry

    def copy(self) -> 'CertaintyStore':
        clone = CertaintyStore()
        for handle, record in self._records.items():
            clone._records[handle] = ProductCertainty(
                genre=record.genre, subgenre=record.subgenre, decade=record.decade
            )
        return clone

    def __len__(self):
        return len(self._records)

    def __contains__(self, handle):
        return handle in self._records

    def __eq__(self, other):
        if not isinstance(other, CertaintyStore):
            return NotImplemented
        return self._records == other._records
