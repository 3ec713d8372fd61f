"""
Question Generator Module
Turns vendor tag frequencies into a ranked queue of yes/no questions
"""
import logging
import math
from typing import Dict, Iterable, List, Optional, Tuple

from .models import (
    RULE_TAG_TYPES,
    EngineSettings,
    Question,
    VendorGroup,
    normalize_vendor,
    parse_question_id,
    question_id_for,
    question_key,
    question_text_for,
)


logger = logging.getLogger('tagquest.question_generator')


def percent(part: int, total: int) -> int:
    """Whole-number percentage, halves rounded up."""
    if total <= 0:
        return 0
    return int(math.floor(100 * part / total + 0.5))


def _vendor_question(group: VendorGroup, tag_type: str, settings: EngineSettings) -> Optional[Question]:
    total = group.product_count
    counts = group.frequencies(tag_type)
    total_tagged = sum(counts.values())
    missing = total - total_tagged

    # Nothing to fill in, or nothing to extrapolate from
    if missing <= 0 or total_tagged == 0:
        return None

    top_value, top_count = counts.most_common(1)[0]
    existing_percent = percent(top_count, total)
    if existing_percent < settings.majority_threshold:
        return None

    return Question(
        id=question_id_for(tag_type, group.vendor),
        text=question_text_for(group.vendor, top_value),
        context=f"{top_count} of {total} already tagged",
        impact=f"+{missing} products",
        affected_count=missing,
        type=f"vendor-{tag_type}",
        vendor=group.vendor,
        suggested_value=top_value,
        existing_percent=existing_percent,
    )


def generate_questions(
    vendor_groups: Dict[str, VendorGroup],
    answered_ids: Iterable[str] = (),
    settings: Optional[EngineSettings] = None,
    answered_keys: Iterable[Tuple[str, str]] = (),
) -> List[Question]:
    """
    Build the ranked question queue

    A vendor yields at most one genre and one decade question. Umbrella
    vendors and vendors with too few products are skipped. Questions whose id
    is already in the answer history are dropped. Answers are matched on tag
    type and normalized vendor, so a vendor whose display spelling changed
    between catalog loads is not asked again.

    Args:
        vendor_groups: Output of build_vendor_groups
        answered_ids: Question ids present in the answer history
        settings: Engine thresholds, defaults when omitted
        answered_keys: (tag_type, normalized vendor) pairs already answered

    Returns:
        List[Question]: Sorted by affected count, then existing percent, both descending
    """
    settings = settings or EngineSettings()
    excluded = {normalize_vendor(v) for v in settings.excluded_vendors}
    answered = set(answered_keys)
    for question_id in answered_ids:
        tag_type, vendor = parse_question_id(question_id)
        if tag_type and vendor:
            answered.add(question_key(tag_type, vendor))

    questions: List[Question] = []
    for key, group in vendor_groups.items():
        if key in excluded:
            continue
        if group.product_count < settings.min_vendor_products:
            continue

        for tag_type in RULE_TAG_TYPES:
            question = _vendor_question(group, tag_type, settings)
            if question is not None:
                questions.append(question)

    questions.sort(key=lambda q: (-q.affected_count, -q.existing_percent))

    pending = [q for q in questions if q.key not in answered]
    logger.debug(f"Generated {len(questions)} questions, {len(questions) - len(pending)} already answered")
    return pending
