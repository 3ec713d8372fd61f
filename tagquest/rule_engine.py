"""
Rule Engine Module
Creates vendor rules from answers and propagates them into the certainty store
"""
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from .certainty_store import CertaintyStore
from .models import (
    CertaintyEntry,
    CertaintySource,
    EngineSettings,
    Question,
    Rule,
    RuleApplication,
    VendorGroup,
    normalize_vendor,
)
from .vendor_aggregator import find_group


logger = logging.getLogger('tagquest.rule_engine')

REASON_CONFIRMED = 'User confirmed'
REASON_META = 'User confirmed (meta-question)'
REASON_EDITED = 'User confirmed (edited)'


def rule_certainty(existing_percent: int, settings: Optional[EngineSettings] = None) -> int:
    """Confidence for a live rule: existing share plus a bonus, capped below 100."""
    settings = settings or EngineSettings()
    return min(settings.rule_certainty_cap, existing_percent + settings.rule_certainty_bonus)


def make_rule(vendor: str, tag_type: str, value: str, certainty_percent: int, reason: str) -> Rule:
    return Rule(
        type=f"vendor-{tag_type}",
        vendor=vendor,
        tag_type=tag_type,
        value=value,
        certainty_percent=certainty_percent,
        reason=reason,
    )


def rule_from_question(question: Question, settings: Optional[EngineSettings] = None,
                       reason: str = REASON_CONFIRMED) -> Rule:
    return make_rule(
        question.vendor,
        question.tag_type,
        question.suggested_value,
        rule_certainty(question.existing_percent, settings),
        reason,
    )


def apply_rule(rule: Rule, vendor_groups: Dict[str, VendorGroup], store: CertaintyStore) -> RuleApplication:
    """
    Apply a rule to every product of its vendor

    A product's slot is only replaced when it is empty or holds a strictly
    lower confidence, so applying the same rule again changes nothing and no
    entry ever loses confidence.

    Args:
        rule: Rule to apply
        vendor_groups: Current vendor groups
        store: Session certainty store, mutated in place

    Returns:
        RuleApplication: Whether the vendor exists and how many slots changed
    """
    group = find_group(vendor_groups, rule.vendor)
    if group is None:
        logger.warning(f"Rule for vendor '{rule.vendor}' skipped: vendor not in current catalog")
        return RuleApplication(rule=rule, vendor_found=False)

    entry = CertaintyEntry(rule.value, rule.certainty_percent, CertaintySource.RULE)
    updated = 0
    for product in group.products:
        if store.offer(product.handle, rule.tag_type, entry):
            updated += 1

    logger.debug(f"Rule {rule.vendor}/{rule.tag_type}={rule.value} ({rule.certainty_percent}%) updated {updated} products")
    return RuleApplication(rule=rule, vendor_found=True, updated=updated)


def apply_rules(rules: Iterable[Rule], vendor_groups: Dict[str, VendorGroup],
                store: CertaintyStore) -> List[RuleApplication]:
    return [apply_rule(rule, vendor_groups, store) for rule in rules]


def remove_rules(rules: Iterable[Rule], vendor: str, tag_type: str) -> Tuple[List[Rule], int]:
    """
    Drop every rule for a vendor and tag type

    Returns:
        Tuple[List[Rule], int]: Remaining rules and the number removed
    """
    rules = list(rules)
    key = normalize_vendor(vendor)
    kept = [r for r in rules if not (normalize_vendor(r.vendor) == key and r.tag_type == tag_type)]
    return kept, len(rules) - len(kept)
