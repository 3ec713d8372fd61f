"""
Data Models Module
Value objects shared by the inference engine and its collaborators
"""
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple


TAG_TYPES = ('genre', 'subgenre', 'decade')

# Tag types that vendor rules can be inferred for
RULE_TAG_TYPES = ('genre', 'decade')

YES = 'yes'
NO = 'no'
SKIP = 'skip'


def _check_tag_type(tag_type: str, allowed=TAG_TYPES) -> str:
    if tag_type not in allowed:
        raise ValueError(f"Unknown tag type '{tag_type}', expected one of {allowed}")
    return tag_type


def normalize_vendor(name) -> str:
    """Trim, collapse inner whitespace and case-fold a vendor name."""
    return ' '.join((name or '').split()).casefold()


def question_id_for(tag_type: str, vendor: str) -> str:
    return f"vendor-{tag_type}-{vendor}"


def question_text_for(vendor: str, value: str) -> str:
    return f'Should all "{vendor}" products be "{value}"?'


def question_key(tag_type: str, vendor: str) -> Tuple[str, str]:
    """Identity of a vendor question, independent of how the vendor is spelled."""
    return tag_type, normalize_vendor(vendor)


def parse_question_id(question_id: str) -> Tuple[Optional[str], Optional[str]]:
    """Recover (tag_type, vendor) from a "vendor-<tagType>-<vendor>" id."""
    parts = (question_id or '').split('-', 2)
    if len(parts) == 3 and parts[0] == 'vendor' and parts[1] in RULE_TAG_TYPES and parts[2]:
        return parts[1], parts[2]
    return None, None


class CertaintySource(str, Enum):
    EXISTING = 'existing'
    RULE = 'rule'
    MANUAL = 'manual'


@dataclass(frozen=True)
class Product:
    handle: str
    title: str
    vendor: str
    existing_genre: Optional[str] = None
    existing_subgenre: Optional[str] = None
    existing_decade: Optional[str] = None
    tags: str = field(default='', compare=False)

    @property
    def vendor_key(self) -> str:
        """Vendor name trimmed and case-folded, used as the grouping key."""
        return normalize_vendor(self.vendor)

    def existing_value(self, tag_type: str) -> Optional[str]:
        _check_tag_type(tag_type)
        return getattr(self, f'existing_{tag_type}') or None


@dataclass(frozen=True)
class CertaintyEntry:
    value: str
    confidence_percent: int
    source: CertaintySource

    def __post_init__(self):
        if not isinstance(self.value, str) or not self.value.strip():
            raise ValueError("Certainty value must be a non-empty string")
        if isinstance(self.confidence_percent, bool) or not isinstance(self.confidence_percent, int):
            raise ValueError(f"Confidence must be an integer, got {self.confidence_percent!r}")
        if not 0 <= self.confidence_percent <= 100:
            raise ValueError(f"Confidence must be between 0 and 100, got {self.confidence_percent}")
        # Accept plain strings such as 'rule' from persisted payloads
        object.__setattr__(self, 'source', CertaintySource(self.source))

    def to_dict(self) -> Dict:
        return {'value': self.value, 'pct': self.confidence_percent, 'source': self.source.value}


@dataclass
class ProductCertainty:
    """Certainty record for one product, one named slot per tag type."""
    genre: Optional[CertaintyEntry] = None
    subgenre: Optional[CertaintyEntry] = None
    decade: Optional[CertaintyEntry] = None

    def get(self, tag_type: str) -> Optional[CertaintyEntry]:
        return getattr(self, _check_tag_type(tag_type))

    def set(self, tag_type: str, entry: Optional[CertaintyEntry]):
        if entry is not None and not isinstance(entry, CertaintyEntry):
            raise ValueError(f"Expected CertaintyEntry, got {type(entry).__name__}")
        setattr(self, _check_tag_type(tag_type), entry)

    def confidence(self, tag_type: str) -> int:
        entry = self.get(tag_type)
        return entry.confidence_percent if entry else 0


@dataclass
class VendorGroup:
    vendor: str
    products: List[Product] = field(default_factory=list)
    existing_genres: Counter = field(default_factory=Counter)
    existing_decades: Counter = field(default_factory=Counter)

    @property
    def product_count(self) -> int:
        return len(self.products)

    def frequencies(self, tag_type: str) -> Counter:
        _check_tag_type(tag_type, RULE_TAG_TYPES)
        return self.existing_genres if tag_type == 'genre' else self.existing_decades


@dataclass(frozen=True)
class Rule:
    type: str
    vendor: str
    tag_type: str
    value: str
    certainty_percent: int
    reason: str = ''

    def __post_init__(self):
        _check_tag_type(self.tag_type, RULE_TAG_TYPES)
        if not isinstance(self.value, str) or not self.value.strip():
            raise ValueError("Rule value must be a non-empty string")
        if not 0 <= self.certainty_percent <= 100:
            raise ValueError(f"Rule certainty must be between 0 and 100, got {self.certainty_percent}")

    def to_dict(self) -> Dict:
        return {
            'type': self.type,
            'vendor': self.vendor,
            'tagType': self.tag_type,
            'value': self.value,
            'certaintyPct': self.certainty_percent,
            'reason': self.reason,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Rule':
        tag_type = data.get('tagType') or data.get('tag_type')
        return cls(
            type=data.get('type') or f'vendor-{tag_type}',
            vendor=data['vendor'],
            tag_type=tag_type,
            value=data['value'],
            certainty_percent=int(data.get('certaintyPct', data.get('certainty_percent', 0))),
            reason=data.get('reason') or '',
        )


@dataclass(frozen=True)
class Question:
    id: str
    text: str
    context: str
    impact: str
    affected_count: int
    type: str
    vendor: str
    suggested_value: str
    existing_percent: int

    @property
    def tag_type(self) -> str:
        return self.type.split('-', 1)[1]

    @property
    def key(self) -> Tuple[str, str]:
        return question_key(self.tag_type, self.vendor)


@dataclass
class Answer:
    """
    One entry of the answer log.

    The vendor, tag type, suggested value and existing percent are stored
    alongside the answer so an edit never has to re-derive them from the
    question id or text. Entries loaded from older sessions may lack them.
    """
    question_id: str
    question_text: str
    answer: str
    vendor: Optional[str] = None
    tag_type: Optional[str] = None
    suggested_value: Optional[str] = None
    existing_percent: Optional[int] = None

    @property
    def key(self) -> Optional[Tuple[str, str]]:
        """Question identity from the stored context, or parsed from the id for older entries."""
        tag_type, vendor = self.tag_type, self.vendor
        if not (tag_type and vendor):
            tag_type, vendor = parse_question_id(self.question_id)
        if not (tag_type and vendor):
            return None
        return question_key(tag_type, vendor)

    @property
    def is_yes(self) -> bool:
        return self.answer == YES

    @property
    def is_detailed(self) -> bool:
        return self.answer not in (YES, NO)

    @classmethod
    def for_question(cls, question: Question, response: str) -> 'Answer':
        return cls(
            question_id=question.id,
            question_text=question.text,
            answer=response,
            vendor=question.vendor,
            tag_type=question.tag_type,
            suggested_value=question.suggested_value,
            existing_percent=question.existing_percent,
        )

    def to_dict(self) -> Dict:
        return {
            'questionId': self.question_id,
            'questionText': self.question_text,
            'answer': self.answer,
            'vendor': self.vendor,
            'tagType': self.tag_type,
            'suggestedValue': self.suggested_value,
            'existingPct': self.existing_percent,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Answer':
        pct = data.get('existingPct')
        return cls(
            question_id=data['questionId'],
            question_text=data.get('questionText') or '',
            answer=data['answer'],
            vendor=data.get('vendor'),
            tag_type=data.get('tagType'),
            suggested_value=data.get('suggestedValue'),
            existing_percent=int(pct) if pct is not None else None,
        )


@dataclass
class MetaQuestion:
    tag_type: str
    value: str
    vendors: List[str] = field(default_factory=list)
    total_products: int = 0
    questions: List[Question] = field(default_factory=list)

    @property
    def id(self) -> str:
        return f"meta-{self.tag_type}-{self.value}"

    @property
    def text(self) -> str:
        return f'Should all products from these {len(self.vendors)} vendors be "{self.value}"?'


@dataclass(frozen=True)
class EngineSettings:
    majority_threshold: int = 50
    min_vendor_products: int = 2
    rule_certainty_bonus: int = 10
    rule_certainty_cap: int = 95
    edit_rule_certainty: int = 85
    excluded_vendors: FrozenSet[str] = frozenset({'uDiscover Music', 'Various Artists'})
    checkpoint_interval: int = 10
    recompute_on_retract: bool = False


@dataclass
class RuleApplication:
    rule: Rule
    vendor_found: bool
    updated: int = 0


@dataclass
class AnswerResult:
    success: bool
    reason: str = ''
    answers: List[Answer] = field(default_factory=list)
    rules: List[Rule] = field(default_factory=list)
    applications: List[RuleApplication] = field(default_factory=list)
    checkpoint: bool = False

    @property
    def updated(self) -> int:
        return sum(a.updated for a in self.applications)


@dataclass
class EditResult:
    success: bool
    reason: str = ''
    answer: Optional[Answer] = None
    rule_added: Optional[Rule] = None
    rules_removed: int = 0
    application: Optional[RuleApplication] = None
    recomputed: bool = False
