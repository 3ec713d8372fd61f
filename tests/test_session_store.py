"""
Session store tests
SQLite persistence of sessions, progress and the shared catalog
"""

import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from tagquest import session_store as session_store_module
from tagquest.exceptions import SessionNotFoundError, SessionStoreError
from tagquest.models import Answer, Product, Rule
from tagquest.session import TagSession
from tagquest.session_store import SessionStore


def _make_store(tmp_path):
    return SessionStore(tmp_path / 'data' / 'tagquest.sqlite3')


def _rule(vendor='A', value='Jazz', pct=70):
    return Rule(type='vendor-genre', vendor=vendor, tag_type='genre', value=value,
                certainty_percent=pct, reason='User confirmed')


def test_creates_database_directory(tmp_path):
    store = _make_store(tmp_path)
    assert (tmp_path / 'data' / 'tagquest.sqlite3').exists()
    store.close()


def test_session_round_trip(tmp_path):
    store = _make_store(tmp_path)
    session_id = store.create_session('Vinyl backlog')

    answers = [
        Answer('vendor-genre-A', 'Should all "A" products be "Jazz"?', 'yes', 'A', 'genre', 'Jazz', 60),
        Answer('vendor-decade-B', 'Should all "B" products be "80C"?', 'Mostly 80s, a few reissues'),
    ]
    certainties = [{'handle': 'a-9', 'tagType': 'genre', 'value': 'Jazz', 'pct': 70, 'source': 'rule'}]
    store.save_progress(session_id, rules=[_rule()], answers=answers, certainties=certainties)

    loaded = store.get_session(session_id)
    assert loaded.name == 'Vinyl backlog'
    assert loaded.rules == [_rule()]
    assert loaded.answers == answers
    assert loaded.certainties == certainties
    store.close()


def test_save_progress_replaces_only_given_collections(tmp_path):
    store = _make_store(tmp_path)
    session_id = store.create_session('S')
    store.save_progress(session_id, rules=[_rule()], answers=[Answer('q1', 'Q1?', 'no')])

    store.save_progress(session_id, rules=[_rule('B', 'Rock', 80), _rule('C', 'Pop', 75)])

    loaded = store.get_session(session_id)
    assert [r.vendor for r in loaded.rules] == ['B', 'C']
    assert [a.question_id for a in loaded.answers] == ['q1'], "Answers were not passed, so they stay"

    store.save_progress(session_id, rules=[])
    assert store.get_session(session_id).rules == []
    store.close()


def test_list_sessions_newest_first_with_counts(tmp_path, monkeypatch):
    ticks = iter(datetime(2024, 1, 1) + timedelta(minutes=i) for i in range(100))

    class FakeDatetime:
        @staticmethod
        def now():
            return next(ticks)

    monkeypatch.setattr(session_store_module, 'datetime', FakeDatetime)

    store = _make_store(tmp_path)
    first = store.create_session('First')
    second = store.create_session('Second')
    store.save_progress(first, rules=[_rule()], answers=[Answer('q1', 'Q1?', 'yes'), Answer('q2', 'Q2?', 'no')])

    sessions = store.list_sessions()
    assert [s['id'] for s in sessions] == [first, second]
    assert (sessions[0]['rule_count'], sessions[0]['answer_count']) == (1, 2)
    assert (sessions[1]['rule_count'], sessions[1]['answer_count']) == (0, 0)
    store.close()


def test_rename_and_delete(tmp_path):
    store = _make_store(tmp_path)
    session_id = store.create_session('Old name')
    store.save_progress(session_id, rules=[_rule()])

    store.rename_session(session_id, 'New name')
    assert store.get_session(session_id).name == 'New name'

    store.delete_session(session_id)
    with pytest.raises(SessionNotFoundError):
        store.get_session(session_id)
    assert store.conn.execute('SELECT COUNT(*) FROM rules').fetchone()[0] == 0
    store.close()


def test_unknown_session_and_bad_names(tmp_path):
    store = _make_store(tmp_path)
    with pytest.raises(SessionNotFoundError):
        store.save_progress('missing', rules=[])
    with pytest.raises(SessionNotFoundError):
        store.delete_session('missing')
    with pytest.raises(SessionStoreError):
        store.create_session('   ')
    store.close()


def test_catalog_skips_duplicates_and_orders_by_vendor(tmp_path):
    store = _make_store(tmp_path)
    batch = [
        Product('london-calling', 'London Calling', 'The Clash', existing_genre='Punk', tags='Genre Parent: Punk'),
        Product('kind-of-blue', 'Kind Of Blue', 'Miles Davis', existing_decade='50C'),
    ]
    assert store.add_catalog_products(batch) == 2
    assert store.add_catalog_products([batch[0], Product('abbey-road', 'Abbey Road', 'The Beatles')]) == 1
    assert store.catalog_count() == 3

    catalog = store.load_catalog()
    assert [p.vendor for p in catalog] == ['Miles Davis', 'The Beatles', 'The Clash']
    clash = catalog[2]
    assert clash == batch[0]
    assert clash.tags == 'Genre Parent: Punk'

    store.clear_catalog()
    assert store.catalog_count() == 0
    store.close()


def test_invalid_saved_rule_is_skipped(tmp_path, caplog):
    store = _make_store(tmp_path)
    session_id = store.create_session('S')
    store.save_progress(session_id, rules=[_rule()])
    store.conn.execute('''
        INSERT INTO rules (session_id, type, vendor, tag_type, value, certainty_pct, reason)
        VALUES (?, 'vendor-genre', 'A', 'genre', '', 70, NULL)
    ''', (session_id,))
    store.conn.commit()

    with caplog.at_level(logging.WARNING, logger='tagquest.session_store'):
        loaded = store.get_session(session_id)

    assert loaded.rules == [_rule()]
    assert 'Skipping invalid rule' in caplog.text

    products = [Product('a-1', 'A1', 'A', existing_genre='Jazz'), Product('a-2', 'A2', 'A')]
    session = TagSession(products, rules=loaded.rules, certainties=loaded.certainties)
    assert session.store.confidence('a-2', 'genre') == 70
    store.close()


def test_replace_catalog(tmp_path):
    store = _make_store(tmp_path)
    store.add_catalog_products([
        Product('kind-of-blue', 'Kind Of Blue', 'Miles Davis'),
        Product('milestones', 'Milestones', 'Miles Davis'),
    ])

    updated = Product('kind-of-blue', 'Kind Of Blue', 'Miles Davis', existing_genre='Jazz', tags='Genre Parent: Jazz')
    assert store.add_catalog_products([updated], replace=True) == 1

    catalog = store.load_catalog()
    assert catalog == [updated]
    assert catalog[0].tags == 'Genre Parent: Jazz'
    store.close()
