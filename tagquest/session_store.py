"""
Session Store Module
SQLite persistence for tagging sessions and the shared product catalog
"""
import logging
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .exceptions import SessionNotFoundError, SessionStoreError
from .models import Answer, Product, Rule


@dataclass
class StoredSession:
    id: str
    name: str
    created_at: str
    updated_at: str
    rules: List[Rule] = field(default_factory=list)
    answers: List[Answer] = field(default_factory=list)
    certainties: List[Dict] = field(default_factory=list)


class SessionStore:
    """
    Sessions, their rules, answer log and certainty overrides, plus the
    catalog every session works from.

    ``save_progress`` replaces each collection it is given wholesale; a
    collection passed as None is left untouched.
    """

    def __init__(self, db_path='data/tagquest.sqlite3', logger=None):
        self.db_path = str(db_path)
        self.logger = logger or logging.getLogger('tagquest.session_store')
        self._ensure_parent()
        self.conn = sqlite3.connect(self.db_path)
        self.conn.row_factory = sqlite3.Row
        self._create_tables()

    def _ensure_parent(self):
        if self.db_path == ':memory:':
            return
        p = Path(self.db_path)
        if not p.parent.exists():
            p.parent.mkdir(parents=True, exist_ok=True)

    def _create_tables(self):
        cur = self.conn.cursor()
        cur.execute('''
        CREATE TABLE IF NOT EXISTS sessions (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            created_at TEXT,
            updated_at TEXT
        )
        ''')
        cur.execute('''
        CREATE TABLE IF NOT EXISTS rules (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            session_id TEXT NOT NULL,
            type TEXT,
            vendor TEXT,
            tag_type TEXT,
            value TEXT,
            certainty_pct INTEGER,
            reason TEXT,
            FOREIGN KEY (session_id) REFERENCES sessions(id)
        )
        ''')
        cur.execute('''
        CREATE TABLE IF NOT EXISTS answers (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            session_id TEXT NOT NULL,
            question_id TEXT,
            question_text TEXT,
            answer TEXT,
            vendor TEXT,
            tag_type TEXT,
            suggested_value TEXT,
            existing_pct INTEGER,
            FOREIGN KEY (session_id) REFERENCES sessions(id)
        )
        ''')
        cur.execute('''
        CREATE TABLE IF NOT EXISTS certainties (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            session_id TEXT NOT NULL,
            handle TEXT,
            tag_type TEXT,
            value TEXT,
            pct INTEGER,
            source TEXT,
            FOREIGN KEY (session_id) REFERENCES sessions(id)
        )
        ''')
        cur.execute('''
        CREATE TABLE IF NOT EXISTS catalog_products (
            handle TEXT PRIMARY KEY,
            title TEXT,
            vendor TEXT,
            existing_genre TEXT,
            existing_subgenre TEXT,
            existing_decade TEXT,
            tags TEXT
        )
        ''')
        cur.execute('CREATE INDEX IF NOT EXISTS idx_rules_session ON rules(session_id)')
        cur.execute('CREATE INDEX IF NOT EXISTS idx_answers_session ON answers(session_id)')
        cur.execute('CREATE INDEX IF NOT EXISTS idx_certainties_session ON certainties(session_id)')
        self.conn.commit()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, name: str) -> str:
        """Create an empty session, return its id"""
        name = (name or '').strip()
        if not name:
            raise SessionStoreError("Session name must not be empty")
        session_id = str(uuid.uuid4())
        now = datetime.now().isoformat()
        self.conn.execute(
            'INSERT INTO sessions (id, name, created_at, updated_at) VALUES (?, ?, ?, ?)',
            (session_id, name, now, now),
        )
        self.conn.commit()
        return session_id

    def list_sessions(self) -> List[Dict]:
        """All sessions with rule and answer counts, most recently updated first"""
        cur = self.conn.execute('''
            SELECT s.id, s.name, s.created_at, s.updated_at,
                   (SELECT COUNT(*) FROM rules r WHERE r.session_id = s.id) AS rule_count,
                   (SELECT COUNT(*) FROM answers a WHERE a.session_id = s.id) AS answer_count
            FROM sessions s
            ORDER BY s.updated_at DESC, s.rowid DESC
        ''')
        return [dict(row) for row in cur.fetchall()]

    def _require_session(self, session_id: str) -> sqlite3.Row:
        row = self.conn.execute('SELECT * FROM sessions WHERE id = ?', (session_id,)).fetchone()
        if row is None:
            raise SessionNotFoundError(f"Session not found: {session_id}")
        return row

    def get_session(self, session_id: str) -> StoredSession:
        row = self._require_session(session_id)

        rules = []
        for r in self.conn.execute('SELECT * FROM rules WHERE session_id = ? ORDER BY id', (session_id,)):
            try:
                rules.append(Rule(
                    type=r['type'],
                    vendor=r['vendor'],
                    tag_type=r['tag_type'],
                    value=r['value'],
                    certainty_percent=r['certainty_pct'],
                    reason=r['reason'] or '',
                ))
            except (TypeError, ValueError) as e:
                self.logger.warning(f"Skipping invalid rule {r['id']} in session {session_id}: {e}")
        answers = [
            Answer(
                question_id=a['question_id'],
                question_text=a['question_text'] or '',
                answer=a['answer'],
                vendor=a['vendor'],
                tag_type=a['tag_type'],
                suggested_value=a['suggested_value'],
                existing_percent=a['existing_pct'],
            )
            for a in self.conn.execute('SELECT * FROM answers WHERE session_id = ? ORDER BY id', (session_id,))
        ]
        certainties = [
            {'handle': c['handle'], 'tagType': c['tag_type'], 'value': c['value'],
             'pct': c['pct'], 'source': c['source']}
            for c in self.conn.execute('SELECT * FROM certainties WHERE session_id = ? ORDER BY id', (session_id,))
        ]

        return StoredSession(
            id=row['id'],
            name=row['name'],
            created_at=row['created_at'],
            updated_at=row['updated_at'],
            rules=rules,
            answers=answers,
            certainties=certainties,
        )

    def save_progress(self, session_id: str, rules: Optional[Iterable[Rule]] = None,
                      answers: Optional[Iterable[Answer]] = None,
                      certainties: Optional[Iterable[Dict]] = None):
        """
        Persist session progress

        Args:
            session_id: Session to update
            rules: Full rule list, replaces the stored one
            answers: Full answer log, replaces the stored one
            certainties: Full certainty snapshot, replaces the stored one
        """
        self._require_session(session_id)
        cur = self.conn.cursor()
        try:
            cur.execute('UPDATE sessions SET updated_at = ? WHERE id = ?',
                        (datetime.now().isoformat(), session_id))

            if rules is not None:
                cur.execute('DELETE FROM rules WHERE session_id = ?', (session_id,))
                cur.executemany('''
                    INSERT INTO rules (session_id, type, vendor, tag_type, value, certainty_pct, reason)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                ''', [(session_id, r.type, r.vendor, r.tag_type, r.value, r.certainty_percent, r.reason or None)
                      for r in rules])

            if answers is not None:
                cur.execute('DELETE FROM answers WHERE session_id = ?', (session_id,))
                cur.executemany('''
                    INSERT INTO answers (session_id, question_id, question_text, answer,
                                         vendor, tag_type, suggested_value, existing_pct)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ''', [(session_id, a.question_id, a.question_text, a.answer,
                       a.vendor, a.tag_type, a.suggested_value, a.existing_percent)
                      for a in answers])

            if certainties is not None:
                cur.execute('DELETE FROM certainties WHERE session_id = ?', (session_id,))
                cur.executemany('''
                    INSERT INTO certainties (session_id, handle, tag_type, value, pct, source)
                    VALUES (?, ?, ?, ?, ?, ?)
                ''', [(session_id, c['handle'], c.get('tagType') or c.get('tag_type'),
                       c['value'], c['pct'], c['source'])
                      for c in certainties])

            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            raise SessionStoreError(f"Failed to save session {session_id}: {e}") from e

    def rename_session(self, session_id: str, name: str):
        name = (name or '').strip()
        if not name:
            raise SessionStoreError("Session name must not be empty")
        self._require_session(session_id)
        self.conn.execute('UPDATE sessions SET name = ?, updated_at = ? WHERE id = ?',
                          (name, datetime.now().isoformat(), session_id))
        self.conn.commit()

    def delete_session(self, session_id: str):
        self._require_session(session_id)
        for table in ('rules', 'answers', 'certainties'):
            self.conn.execute(f'DELETE FROM {table} WHERE session_id = ?', (session_id,))
        self.conn.execute('DELETE FROM sessions WHERE id = ?', (session_id,))
        self.conn.commit()

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def add_catalog_products(self, products: Iterable[Product], replace: bool = False) -> int:
        """
        Insert products into the shared catalog

        Handles already in the catalog are skipped and keep their stored
        tags. With replace, the catalog is emptied first in the same
        transaction, so a fresh export fully supersedes it.

        Returns:
            int: Number of products inserted
        """
        if replace:
            self.conn.execute('DELETE FROM catalog_products')
        before = self.conn.total_changes
        self.conn.executemany('''
            INSERT OR IGNORE INTO catalog_products
                (handle, title, vendor, existing_genre, existing_subgenre, existing_decade, tags)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        ''', [(p.handle, p.title, p.vendor, p.existing_genre, p.existing_subgenre, p.existing_decade, p.tags)
              for p in products])
        self.conn.commit()
        return self.conn.total_changes - before

    def load_catalog(self) -> List[Product]:
        cur = self.conn.execute('SELECT * FROM catalog_products ORDER BY vendor, rowid')
        return [
            Product(
                handle=row['handle'],
                title=row['title'] or '',
                vendor=row['vendor'] or '',
                existing_genre=row['existing_genre'],
                existing_subgenre=row['existing_subgenre'],
                existing_decade=row['existing_decade'],
                tags=row['tags'] or '',
            )
            for row in cur.fetchall()
        ]

    def catalog_count(self) -> int:
        return self.conn.execute('SELECT COUNT(*) FROM catalog_products').fetchone()[0]

    def clear_catalog(self):
        self.conn.execute('DELETE FROM catalog_products')
        self.conn.commit()

    def close(self):
        self.conn.close()
