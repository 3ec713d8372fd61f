"""
Tagging Session Module
One operator's in-memory working set: catalog view, certainty store, rules and answer log
"""
import dataclasses
import logging
import re
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .audit import certainty_stats
from .certainty_store import CertaintyStore
from .meta_questions import group_meta_questions
from .models import (
    NO,
    RULE_TAG_TYPES,
    SKIP,
    YES,
    Answer,
    AnswerResult,
    CertaintyEntry,
    CertaintySource,
    EditResult,
    EngineSettings,
    MetaQuestion,
    Product,
    Question,
    Rule,
    parse_question_id,
    question_id_for,
    question_key,
    question_text_for,
)
from .question_generator import generate_questions, percent
from .rule_engine import (
    REASON_EDITED,
    REASON_META,
    apply_rule,
    apply_rules,
    make_rule,
    remove_rules,
    rule_certainty,
    rule_from_question,
)
from .vendor_aggregator import build_vendor_groups, find_group, untagged_products


SUGGESTED_VALUE_PATTERN = re.compile(r'be "([^"]+)"\?')

ANSWER_FILTERS = ('all', 'yes', 'no', 'detailed')


def normalize_response(response) -> str:
    """Trim a response; yes/no/skip are case-insensitive, free text is kept as typed."""
    text = (response or '').strip() if isinstance(response, str) else ''
    if text.lower() in (YES, NO, SKIP):
        return text.lower()
    return text


class TagSession:
    """
    Inference working set for a single session

    Construction follows the session-load order: seed certainty from the
    catalog's existing tags, overlay any saved certainty entries, then
    reapply the saved rules.
    """

    def __init__(
        self,
        products: Iterable[Product],
        settings: Optional[EngineSettings] = None,
        rules: Iterable[Rule] = (),
        answers: Iterable[Answer] = (),
        certainties: Iterable[Dict] = (),
        logger=None,
    ):
        """
        Initialize a session

        Args:
            products: Catalog products
            settings: Engine settings, defaults when omitted
            rules: Saved rules
            answers: Saved answer log
            certainties: Saved certainty records (see CertaintyStore.snapshot)
            logger: Logger instance
        """
        self.settings = settings or EngineSettings()
        self.logger = logger or logging.getLogger('tagquest.session')
        self.products: List[Product] = list(products)
        self.vendor_groups = build_vendor_groups(self.products)
        self.store = CertaintyStore.seed(self.products)
        self.store.restore(certainties)
        self.rules: List[Rule] = list(rules)
        self.history: List[Answer] = list(answers)
        apply_rules(self.rules, self.vendor_groups, self.store)

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------

    @property
    def answered_keys(self) -> Set[Tuple[str, str]]:
        """(tag_type, normalized vendor) of every answered vendor question"""
        return {a.key for a in self.history if a.key is not None}

    def questions(self) -> List[Question]:
        return generate_questions(self.vendor_groups, settings=self.settings, answered_keys=self.answered_keys)

    def next_question(self) -> Optional[Question]:
        pending = self.questions()
        return pending[0] if pending else None

    def meta_questions(self, tag_type: Optional[str] = None) -> List[MetaQuestion]:
        return group_meta_questions(self.questions(), self.vendor_groups, tag_type)

    def affected_products(self, question: Question) -> List[Product]:
        group = find_group(self.vendor_groups, question.vendor)
        if group is None:
            return []
        return untagged_products(group, question.tag_type)

    # ------------------------------------------------------------------
    # Answering
    # ------------------------------------------------------------------

    def _crossed_checkpoint(self, before: int) -> bool:
        interval = self.settings.checkpoint_interval
        return len(self.history) // interval > before // interval

    def answer(self, question: Question, response: str) -> AnswerResult:
        """
        Record an answer to a single vendor question

        "yes" creates a rule at the live certainty formula and applies it.
        "no", "skip" and free text only extend the log.

        Args:
            question: Question being answered
            response: "yes", "no", "skip" or free text

        Returns:
            AnswerResult: Appended answer, created rule and checkpoint flag
        """
        response = normalize_response(response)
        if not response:
            return AnswerResult(success=False, reason='Empty answer')
        if question.key in self.answered_keys:
            return AnswerResult(success=False, reason=f"Question '{question.id}' is already answered")

        before = len(self.history)
        entry = Answer.for_question(question, response)
        self.history.append(entry)
        result = AnswerResult(success=True, answers=[entry])

        if response == YES:
            rule = rule_from_question(question, self.settings)
            self.rules.append(rule)
            result.rules.append(rule)
            result.applications.append(apply_rule(rule, self.vendor_groups, self.store))

        result.checkpoint = self._crossed_checkpoint(before)
        self.logger.info(f"Answered {question.id}: {response} ({result.updated} products updated)")
        return result

    def answer_meta(self, meta: MetaQuestion, response: str) -> AnswerResult:
        """
        Answer a cross-vendor question once for all of its vendors

        One answer is logged per vendor so each vendor question drops out of
        the queue. On "yes" every vendor gets its own rule, with certainty
        computed from that vendor's own share of the value.

        Args:
            meta: Grouped question
            response: "yes", "no" or "skip"

        Returns:
            AnswerResult: Answers and rules created across vendors
        """
        response = normalize_response(response)
        if response not in (YES, NO, SKIP):
            return AnswerResult(success=False, reason='Meta-questions take yes, no or skip')

        before = len(self.history)
        answered = self.answered_keys
        result = AnswerResult(success=True)

        for vendor in meta.vendors:
            question_id = question_id_for(meta.tag_type, vendor)
            if question_key(meta.tag_type, vendor) in answered:
                self.logger.warning(f"Skipping {question_id}: already answered")
                continue

            group = find_group(self.vendor_groups, vendor)
            existing_percent = None
            if group is not None:
                existing_percent = percent(group.frequencies(meta.tag_type)[meta.value], group.product_count)

            entry = Answer(
                question_id=question_id,
                question_text=question_text_for(vendor, meta.value),
                answer=response,
                vendor=vendor,
                tag_type=meta.tag_type,
                suggested_value=meta.value,
                existing_percent=existing_percent,
            )
            self.history.append(entry)
            result.answers.append(entry)

            if response != YES:
                continue
            if group is None:
                self.logger.warning(f"No rule for '{vendor}': vendor not in current catalog")
                continue

            rule = make_rule(
                vendor,
                meta.tag_type,
                meta.value,
                rule_certainty(existing_percent, self.settings),
                REASON_META,
            )
            self.rules.append(rule)
            result.rules.append(rule)
            result.applications.append(apply_rule(rule, self.vendor_groups, self.store))

        result.checkpoint = self._crossed_checkpoint(before)
        self.logger.info(
            f"Meta-question {meta.id}: {response} for {len(result.answers)} vendors "
            f"({result.updated} products updated)"
        )
        return result

    # ------------------------------------------------------------------
    # Review
    # ------------------------------------------------------------------

    def find_answer(self, question_id: str) -> Optional[Answer]:
        """Answer logged for a question id, falling back to the same vendor under another spelling"""
        for entry in self.history:
            if entry.question_id == question_id:
                return entry
        tag_type, vendor = parse_question_id(question_id)
        if not (tag_type and vendor):
            return None
        key = question_key(tag_type, vendor)
        for entry in self.history:
            if entry.key == key:
                return entry
        return None

    def filter_answers(self, kind: str = 'all') -> List[Answer]:
        if kind not in ANSWER_FILTERS:
            raise ValueError(f"Unknown answer filter '{kind}', expected one of {ANSWER_FILTERS}")
        if kind == 'all':
            return list(self.history)
        if kind == 'detailed':
            return [a for a in self.history if a.is_detailed]
        return [a for a in self.history if a.answer == kind]

    def edit_answer(self, question_id: str, new_answer: str) -> EditResult:
        """
        Change a previous answer

        Going from "yes" to anything else removes the vendor's rule for that
        tag type; certainty already raised by it stays unless
        recompute_on_retract is set. Going to "yes" synthesizes a rule at the
        fixed edit certainty from the suggested value recorded with the
        answer (or, for older answers, quoted in the question text). When that
        value cannot be recovered the edit is refused and nothing changes.

        Args:
            question_id: Id of the answered question
            new_answer: Replacement answer

        Returns:
            EditResult: Outcome, rule added or number of rules removed
        """
        entry = self.find_answer(question_id)
        if entry is None:
            return EditResult(success=False, reason=f"No answer recorded for '{question_id}'")

        new_answer = normalize_response(new_answer)
        if not new_answer:
            return EditResult(success=False, reason='Empty answer')

        was_yes = entry.is_yes
        is_yes = new_answer == YES

        tag_type, vendor = entry.tag_type, entry.vendor
        if not (tag_type and vendor):
            tag_type, vendor = parse_question_id(question_id)

        result = EditResult(success=True)

        if was_yes != is_yes and not (tag_type and vendor):
            self.logger.warning(f"Edit of '{question_id}' refused: vendor and tag type unknown")
            return EditResult(success=False, reason='Cannot determine vendor and tag type for this question')

        suggested = entry.suggested_value
        if is_yes and not was_yes:
            if not suggested:
                match = SUGGESTED_VALUE_PATTERN.search(entry.question_text or '')
                suggested = match.group(1) if match else None
            if not suggested:
                self.logger.warning(f"Edit of '{question_id}' refused: suggested value not recoverable")
                return EditResult(success=False, reason='Cannot recover the suggested value for this question')

            rule = make_rule(vendor, tag_type, suggested, self.settings.edit_rule_certainty, REASON_EDITED)
            self.rules.append(rule)
            result.rule_added = rule
            result.application = apply_rule(rule, self.vendor_groups, self.store)

        elif was_yes and not is_yes:
            self.rules, result.rules_removed = remove_rules(self.rules, vendor, tag_type)
            if self.settings.recompute_on_retract:
                self.recompute_certainty()
                result.recomputed = True

        updated = dataclasses.replace(
            entry, answer=new_answer, vendor=vendor, tag_type=tag_type, suggested_value=suggested
        )
        self.history[self.history.index(entry)] = updated
        result.answer = updated

        self.logger.info(f"Edited {question_id}: {entry.answer} -> {new_answer}")
        return result

    # ------------------------------------------------------------------
    # Certainty maintenance
    # ------------------------------------------------------------------

    def set_manual(self, handle: str, tag_type: str, value: str,
                   confidence_percent: int = 100) -> Optional[CertaintyEntry]:
        if not any(p.handle == handle for p in self.products):
            self.logger.warning(f"Manual tag for unknown product '{handle}' ignored")
            return None
        return self.store.set_manual(handle, tag_type, value, confidence_percent)

    def recompute_certainty(self) -> CertaintyStore:
        """
        Rebuild the store from existing tags, manual entries and current rules

        Rule-sourced entries left behind by rules that no longer exist are
        dropped.
        """
        manual = list(self.store.entries(CertaintySource.MANUAL))
        store = CertaintyStore.seed(self.products)
        known = {p.handle for p in self.products}
        for handle, tag_type, entry in manual:
            if handle in known:
                store.set_manual(handle, tag_type, entry.value, entry.confidence_percent)
        apply_rules(self.rules, self.vendor_groups, store)
        self.store = store
        self.logger.info(f"Recomputed certainty from {len(self.rules)} rules")
        return store

    def reload_catalog(self, products: Iterable[Product]):
        """Swap in a new catalog and reapply every stored rule."""
        self.products = list(products)
        self.vendor_groups = build_vendor_groups(self.products)
        self.recompute_certainty()

    # ------------------------------------------------------------------
    # Reporting and persistence payloads
    # ------------------------------------------------------------------

    def stats(self) -> Dict:
        stats = certainty_stats(self.products, self.store)
        stats['overall'] = {
            'questions_remaining': len(self.questions()),
            'questions_answered': len(self.history),
            'rules': len(self.rules),
        }
        return stats

    def snapshot(self) -> Dict:
        return {
            'rules': [r.to_dict() for r in self.rules],
            'answers': [a.to_dict() for a in self.history],
            'certainties': self.store.snapshot(),
        }
