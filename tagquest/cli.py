"""
TagQuest Command Line
=====================
Import a Shopify catalog, audit its tags and work through vendor questions
session by session.
"""
import argparse
import sys
from typing import Callable, List, Optional

from .audit import (
    AUDIT_FILTERS,
    audit_catalog,
    export_missing,
    filter_products,
    verification_sample,
)
from .catalog_loader import CatalogLoader
from .config import Config
from .exceptions import (
    CatalogLoadError,
    SessionNotFoundError,
    SessionStoreError,
    TaxonomyError,
    VerificationError,
)
from .logger import setup_logger
from .models import RULE_TAG_TYPES, TAG_TYPES
from .question_generator import percent
from .session import ANSWER_FILTERS, TagSession
from .session_store import SessionStore
from .taxonomy import load_taxonomy
from .verification import DeezerClient, DiscogsClient, LookupCache, VerificationAdapter


QUIT_WORDS = ('q', 'quit', 'exit')


def build_parser():
    """Build the argument parser"""
    parser = argparse.ArgumentParser(
        prog='tagquest',
        description='TagQuest - infer genre and decade tags for a music catalog, one vendor question at a time',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Load a Shopify export into the shared catalog
  tagquest catalog import products_export_1.csv products_export_2.csv

  # Reload the catalog from an updated export
  tagquest catalog import --replace products_export_1.csv

  # Check tag coverage and export products missing a decade
  tagquest audit products_export_1.csv --export-missing decade --output missing_decade.csv

  # Start a session and answer questions, checking Discogs first
  tagquest sessions create "Vinyl backlog"
  tagquest ask <session-id> --verify

  # Undo an answer
  tagquest review <session-id> --edit "vendor-genre-Miles Davis" no
        """
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        help='Path to configuration file (config.env)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )

    sub = parser.add_subparsers(dest='command', required=True)

    catalog = sub.add_parser('catalog', help='Manage the shared product catalog')
    catalog_sub = catalog.add_subparsers(dest='action', required=True)
    catalog_import = catalog_sub.add_parser(
        'import',
        help='Add products from Shopify CSV exports (handles already in the catalog keep their stored tags)',
    )
    catalog_import.add_argument('files', nargs='+', help='CSV files')
    catalog_import.add_argument('--replace', action='store_true',
                                help='Clear the catalog first so updated tags from a fresh export are picked up')
    catalog_sub.add_parser('clear', help='Remove every product from the catalog')
    catalog_sub.add_parser('count', help='Show the number of products in the catalog')

    audit = sub.add_parser('audit', help='Report tag coverage of CSV exports')
    audit.add_argument('files', nargs='+', help='CSV files')
    audit.add_argument('--filter', '-f', choices=AUDIT_FILTERS, default=None,
                       help='List products matching a coverage filter')
    audit.add_argument('--search', '-s', type=str, default='',
                       help='Only list products whose handle, title or vendor contains this text')
    audit.add_argument('--sample', action='store_true',
                       help='Print a random spot-check sample across coverage buckets')
    audit.add_argument('--export-missing', choices=TAG_TYPES,
                       help='Write products missing this tag type to CSV')
    audit.add_argument('--output', '-o', type=str, help='Output CSV path for --export-missing')

    sessions = sub.add_parser('sessions', help='Manage tagging sessions')
    sessions_sub = sessions.add_subparsers(dest='action', required=True)
    sessions_sub.add_parser('list', help='List sessions, most recent first')
    create = sessions_sub.add_parser('create', help='Create a session')
    create.add_argument('name')
    rename = sessions_sub.add_parser('rename', help='Rename a session')
    rename.add_argument('session_id')
    rename.add_argument('name')
    delete = sessions_sub.add_parser('delete', help='Delete a session and its progress')
    delete.add_argument('session_id')

    ask = sub.add_parser('ask', help='Answer vendor questions')
    ask.add_argument('session_id')
    ask.add_argument('--verify', action='store_true', help='Show a Discogs second opinion for each question')
    ask.add_argument('--limit', '-l', type=int, help='Stop after N answers')

    meta = sub.add_parser('meta', help='Answer questions that span several vendors')
    meta.add_argument('session_id')
    meta.add_argument('--tag-type', choices=RULE_TAG_TYPES, help='Only genre or only decade groups')
    meta.add_argument('--verify', action='store_true', help='Spot-check a few vendors on Discogs first')

    review = sub.add_parser('review', help='List or edit previous answers')
    review.add_argument('session_id')
    review.add_argument('--filter', '-f', choices=ANSWER_FILTERS, default='all', help='Answers to list')
    review.add_argument('--edit', nargs=2, metavar=('QUESTION_ID', 'ANSWER'), help='Change one answer')

    stats = sub.add_parser('stats', help='Certainty statistics for a session')
    stats.add_argument('session_id')

    return parser


class TagQuestApp:
    """Wires configuration, storage and the inference session together for the CLI"""

    def __init__(self, config_file=None, verbose=False, input_fn: Callable[[str], str] = input):
        """
        Initialize the application

        Args:
            config_file: Path to configuration file
            verbose: Enable verbose logging
            input_fn: Prompt function, replaced in tests
        """
        self.config = Config(config_file)
        self.logger = setup_logger(
            'tagquest',
            self.config.logs_dir,
            self.config.log_level,
            verbose or self.config.verbose_logging,
            self.config.log_to_file,
        )
        self.settings = self.config.get_engine_settings()
        self.input = input_fn
        self._store = None

    @property
    def store(self) -> SessionStore:
        if self._store is None:
            self._store = SessionStore(self.config.database_path)
        return self._store

    def close(self):
        if self._store is not None:
            self._store.close()

    def _prompt(self, text: str) -> Optional[str]:
        try:
            return self.input(text)
        except EOFError:
            return None

    def _open_session(self, session_id: str):
        stored = self.store.get_session(session_id)
        products = self.store.load_catalog()
        if not products:
            self.logger.warning("Catalog is empty; import products with 'tagquest catalog import'")
        session = TagSession(
            products,
            settings=self.settings,
            rules=stored.rules,
            answers=stored.answers,
            certainties=stored.certainties,
            logger=self.logger.getChild('session'),
        )
        return stored, session

    def _save(self, session_id: str, session: TagSession):
        self.store.save_progress(
            session_id,
            rules=session.rules,
            answers=session.history,
            certainties=session.store.snapshot(),
        )
        self.logger.debug(f"Saved session {session_id}")

    def _build_verifier(self) -> Optional[VerificationAdapter]:
        cache = LookupCache(self.config.lookup_cache_ttl, self.config.lookup_cache_max_entries)
        try:
            discogs = DiscogsClient(self.config.get_discogs_config(), self.logger.getChild('discogs'), cache)
        except VerificationError as e:
            self.logger.warning(f"Verification disabled: {e}")
            return None
        deezer = DeezerClient(self.config.get_deezer_config(), self.logger.getChild('deezer'), cache)
        return VerificationAdapter(
            discogs,
            self.logger.getChild('verification'),
            sample_size=self.config.verification_sample_size,
            deezer=deezer,
            meta_vendors=self.config.meta_verification_vendors,
            meta_products=self.config.meta_verification_products,
        )

    # ------------------------------------------------------------------
    # catalog / audit
    # ------------------------------------------------------------------

    def cmd_catalog(self, args) -> int:
        if args.action == 'import':
            products = CatalogLoader(self.logger.getChild('catalog')).load(args.files)
            inserted = self.store.add_catalog_products(products, replace=args.replace)
            skipped = len(products) - inserted
            if args.replace:
                print(f"✅ Replaced catalog with {inserted} products")
            else:
                print(f"✅ Imported {inserted} products ({skipped} already in catalog)")
            print(f"   Catalog now holds {self.store.catalog_count()} products")
        elif args.action == 'clear':
            self.store.clear_catalog()
            print("✅ Catalog cleared")
        else:
            print(f"{self.store.catalog_count()} products in catalog")
        return 0

    def cmd_audit(self, args) -> int:
        taxonomy = load_taxonomy(self.config.taxonomy_path)
        products = CatalogLoader(self.logger.getChild('catalog')).load(args.files)
        report = audit_catalog(products, taxonomy)

        stats = report.stats
        print("\n" + "=" * 60)
        print("TAG AUDIT")
        print("=" * 60)
        print(f"Products:          {stats['total']}")
        for key, label in (('with_genre', 'With genre'), ('with_subgenre', 'With subgenre'),
                           ('with_decade', 'With decade'), ('complete', 'Complete')):
            print(f"{label + ':':<19}{stats[key]} ({percent(stats[key], stats['total'])}%)")
        print(f"Missing all:       {stats['missing_all']}")
        print(f"Missing only genre / subgenre / decade: "
              f"{stats['missing_genre_only']} / {stats['missing_subgenre_only']} / {stats['missing_decade_only']}")
        print(f"With notes:        {stats['with_notes']}")

        if args.filter or args.search:
            rows = filter_products(report, args.filter or 'all', args.search)
            print(f"\n{len(rows)} matching products:")
            for row in rows:
                self._print_audit_row(row)

        if args.sample:
            print("\nSpot-check sample:")
            for row in verification_sample(report, self.config.verification_sample_size):
                self._print_audit_row(row)

        if args.export_missing:
            if not args.output:
                print("❌ --export-missing needs --output")
                return 1
            count = export_missing(products, args.export_missing, args.output)
            print(f"✅ Wrote {count} products missing {args.export_missing} to {args.output}")
        return 0

    @staticmethod
    def _print_audit_row(row):
        tags = row.tags
        line = (f"  {row.product.handle} | {row.product.vendor} | "
                f"genre={tags.genre or '-'} subgenre={tags.subgenre or '-'} decade={tags.decade or '-'}")
        if tags.notes:
            line += f"  ⚠️  {'; '.join(tags.notes)}"
        print(line)

    # ------------------------------------------------------------------
    # sessions
    # ------------------------------------------------------------------

    def cmd_sessions(self, args) -> int:
        if args.action == 'list':
            sessions = self.store.list_sessions()
            if not sessions:
                print("No sessions yet")
            for s in sessions:
                print(f"{s['id']}  {s['name']}  (rules: {s['rule_count']}, answers: {s['answer_count']}, "
                      f"updated {s['updated_at']})")
        elif args.action == 'create':
            session_id = self.store.create_session(args.name)
            print(f"✅ Created session {session_id}")
        elif args.action == 'rename':
            self.store.rename_session(args.session_id, args.name)
            print(f"✅ Renamed session {args.session_id}")
        else:
            self.store.delete_session(args.session_id)
            print(f"✅ Deleted session {args.session_id}")
        return 0

    # ------------------------------------------------------------------
    # questions
    # ------------------------------------------------------------------

    def cmd_ask(self, args) -> int:
        stored, session = self._open_session(args.session_id)
        verifier = self._build_verifier() if args.verify else None
        print(f"Session: {stored.name}")

        answered = 0
        while args.limit is None or answered < args.limit:
            question = session.next_question()
            if question is None:
                print("🎉 No questions left")
                break

            affected = session.affected_products(question)
            print("\n" + "-" * 60)
            print(question.text)
            print(f"  {question.context} ({question.existing_percent}%), impact {question.impact}")
            for product in affected[:5]:
                print(f"    - {product.title}")
            if len(affected) > 5:
                print(f"    ... and {len(affected) - 5} more")

            if verifier is not None:
                result = verifier.verify(question.vendor, question.suggested_value, question.tag_type, affected)
                if result is None:
                    print("  Discogs: no data")
                elif result.agrees:
                    print(f"  Discogs: ✓ {result.top_value} ({result.confidence_percent}% of sample)")
                else:
                    print(f"  Discogs: ⚠️  suggests {result.top_value} instead")

            response = self._prompt("Answer [yes/no/skip, free text, q to quit]: ")
            if response is None or response.strip().lower() in QUIT_WORDS:
                break

            result = session.answer(question, response)
            if not result.success:
                print(f"❌ {result.reason}")
                continue
            answered += 1

            for rule in result.rules:
                print(f"✅ Rule: {rule.vendor} {rule.tag_type} = {rule.value} at {rule.certainty_percent}% "
                      f"({result.updated} products updated)")
            if result.checkpoint:
                self._save(args.session_id, session)
                print("💾 Progress saved")

        self._save(args.session_id, session)
        print(f"\n💾 Saved {answered} new answers")
        return 0

    def cmd_meta(self, args) -> int:
        stored, session = self._open_session(args.session_id)
        metas = session.meta_questions(args.tag_type)
        if not metas:
            print("No questions span more than one vendor")
            return 0

        for i, meta in enumerate(metas, 1):
            print(f"[{i}] {meta.tag_type}: {meta.value} - {len(meta.vendors)} vendors, {meta.total_products} products")

        choice = self._prompt("Pick a group number (q to quit): ")
        if choice is None or choice.strip().lower() in QUIT_WORDS:
            return 0
        if not choice.strip().isdigit() or not 1 <= int(choice) <= len(metas):
            print("❌ Invalid choice")
            return 1
        meta = metas[int(choice) - 1]

        print(f"\n{meta.text}")
        print(f"  Vendors: {', '.join(meta.vendors)}")

        if args.verify:
            verifier = self._build_verifier()
            if verifier is not None:
                for vendor, result in verifier.verify_meta_question(meta, session.vendor_groups).items():
                    if result is None:
                        print(f"  {vendor}: no data")
                    else:
                        mark = '✓' if result.agrees else '✗'
                        print(f"  {vendor}: {mark} {result.top_value} ({result.confidence_percent}%)")

        response = self._prompt("Answer for all vendors [yes/no/skip]: ")
        if response is None:
            return 0
        result = session.answer_meta(meta, response)
        if not result.success:
            print(f"❌ {result.reason}")
            return 1

        self._save(args.session_id, session)
        print(f"✅ Answered for {len(result.answers)} vendors, {len(result.rules)} rules, "
              f"{result.updated} products updated")
        return 0

    def cmd_review(self, args) -> int:
        stored, session = self._open_session(args.session_id)

        if args.edit:
            question_id, new_answer = args.edit
            result = session.edit_answer(question_id, new_answer)
            if not result.success:
                print(f"❌ {result.reason}")
                return 1
            self._save(args.session_id, session)
            if result.rule_added:
                print(f"✅ Rule added: {result.rule_added.value} at {result.rule_added.certainty_percent}%")
            if result.rules_removed:
                print(f"✅ Removed {result.rules_removed} rule(s)")
            print(f"✅ {question_id} is now '{result.answer.answer}'")
            return 0

        answers = session.filter_answers(args.filter)
        print(f"{len(answers)} answers ({args.filter})")
        for entry in answers:
            print(f"  [{entry.answer}] {entry.question_id}: {entry.question_text}")
        return 0

    def cmd_stats(self, args) -> int:
        stored, session = self._open_session(args.session_id)
        stats = session.stats()
        print(f"Session: {stored.name}")
        for tag_type in ('genre', 'decade'):
            s = stats[tag_type]
            print(f"{tag_type.title():<7} certain {s['certain']}, high {s['high']}, medium {s['medium']}, "
                  f"low {s['low']}, none {s['none']} of {s['total']} - {s['progress']}% done")
        overall = stats['overall']
        print(f"Questions answered {overall['questions_answered']}, remaining {overall['questions_remaining']}, "
              f"rules {overall['rules']}")
        return 0

    def run(self, args) -> int:
        handlers = {
            'catalog': self.cmd_catalog,
            'audit': self.cmd_audit,
            'sessions': self.cmd_sessions,
            'ask': self.cmd_ask,
            'meta': self.cmd_meta,
            'review': self.cmd_review,
            'stats': self.cmd_stats,
        }
        try:
            return handlers[args.command](args)
        except SessionNotFoundError as e:
            print(f"❌ {e}")
            return 1
        except (CatalogLoadError, TaxonomyError, SessionStoreError) as e:
            self.logger.error(str(e))
            print(f"❌ {e}")
            return 1
        finally:
            self.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    app = TagQuestApp(config_file=args.config, verbose=args.verbose)

    is_valid, error = app.config.validate()
    if not is_valid:
        print(f"❌ Invalid configuration: {error}")
        return 1

    return app.run(args)


if __name__ == '__main__':
    sys.exit(main())
