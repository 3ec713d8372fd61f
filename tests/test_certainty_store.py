"""
Certainty store tests
"""

import sys
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from tagquest.certainty_store import CertaintyStore
from tagquest.models import CertaintyEntry, CertaintySource, Product


def _make_store():
    products = [
        Product('p1', 'One', 'A', existing_genre='Jazz', existing_subgenre='Bebop', existing_decade='50C'),
        Product('p2', 'Two', 'A'),
    ]
    return CertaintyStore.seed(products)


def test_seed_marks_existing_tags_certain():
    store = _make_store()
    entry = store.get('p1', 'genre')
    assert entry == CertaintyEntry('Jazz', 100, CertaintySource.EXISTING)
    assert store.get('p1', 'subgenre').value == 'Bebop'
    assert store.get('p2', 'genre') is None
    assert 'p2' in store, "Every catalog product gets a record, even with no tags"
    assert store.confidence('p2', 'decade') == 0


def test_offer_only_raises_confidence():
    store = _make_store()

    assert store.offer('p2', 'genre', CertaintyEntry('Jazz', 70, 'rule'))
    assert not store.offer('p2', 'genre', CertaintyEntry('Rock', 70, 'rule')), "Equal confidence is not an improvement"
    assert not store.offer('p2', 'genre', CertaintyEntry('Rock', 60, 'rule'))
    assert store.get('p2', 'genre').value == 'Jazz'

    assert store.offer('p2', 'genre', CertaintyEntry('Blues', 80, 'rule'))
    assert store.get('p2', 'genre').value == 'Blues'

    assert not store.offer('p1', 'genre', CertaintyEntry('Rock', 95, 'rule')), "Existing tags are never replaced by rules"


def test_set_manual_overrides_any_entry():
    store = _make_store()
    store.set_manual('p1', 'genre', 'Blues', 60)
    entry = store.get('p1', 'genre')
    assert entry.value == 'Blues'
    assert entry.confidence_percent == 60
    assert entry.source is CertaintySource.MANUAL


def test_snapshot_restores_into_fresh_store():
    store = _make_store()
    store.offer('p2', 'decade', CertaintyEntry('60C', 75, CertaintySource.RULE))

    restored = CertaintyStore()
    restored.restore(store.snapshot())
    assert restored == store

    row = next(r for r in store.snapshot() if r['handle'] == 'p2')
    assert row == {'handle': 'p2', 'tagType': 'decade', 'value': '60C', 'pct': 75, 'source': 'rule'}


def test_entries_filter_by_source():
    store = _make_store()
    store.set_manual('p2', 'genre', 'Soul')
    manual = list(store.entries(CertaintySource.MANUAL))
    assert [(h, t) for h, t, _ in manual] == [('p2', 'genre')]
    assert len(list(store.entries())) == 4


def test_copy_is_independent():
    store = _make_store()
    clone = store.copy()
    clone.set_manual('p2', 'genre', 'Soul')
    assert store.get('p2', 'genre') is None


def test_entry_validation():
    with pytest.raises(ValueError):
        CertaintyEntry('', 50, 'rule')
    with pytest.raises(ValueError):
        CertaintyEntry('Jazz', 101, 'rule')
    with pytest.raises(ValueError):
        CertaintyEntry('Jazz', 50.5, 'rule')
    with pytest.raises(ValueError):
        CertaintyEntry('Jazz', 50, 'guess')


def test_restore_skips_malformed_records():
    store = _make_store()
    store.restore([
        {'handle': 'p2', 'tagType': 'genre', 'value': '', 'pct': 70, 'source': 'rule'},
        {'handle': 'p2', 'tagType': 'mood', 'value': 'Calm', 'pct': 70, 'source': 'rule'},
        {'handle': 'p2', 'tagType': 'decade', 'value': '60C', 'source': 'rule'},
        {'handle': 'p2', 'tagType': 'genre', 'value': 'Soul', 'pct': 60, 'source': 'manual'},
    ])
    assert store.get('p2', 'genre') == CertaintyEntry('Soul', 60, CertaintySource.MANUAL)
    assert store.get('p2', 'decade') is None
