"""
Meta-Question Grouper Module
Folds per-vendor questions that suggest the same value into one cross-vendor question
"""
from typing import Dict, List, Optional, Tuple

from .models import MetaQuestion, Question, VendorGroup
from .vendor_aggregator import find_group


def group_meta_questions(
    questions: List[Question],
    vendor_groups: Optional[Dict[str, VendorGroup]] = None,
    tag_type: Optional[str] = None,
) -> List[MetaQuestion]:
    """
    Group the question queue by (tag type, suggested value)

    Args:
        questions: Current question queue
        vendor_groups: Used to total the products behind each group
        tag_type: Restrict to "genre" or "decade"

    Returns:
        List[MetaQuestion]: Groups spanning more than one vendor, most vendors first
    """
    groups: Dict[Tuple[str, str], MetaQuestion] = {}

    for question in questions:
        if tag_type and question.tag_type != tag_type:
            continue
        key = (question.tag_type, question.suggested_value)
        meta = groups.get(key)
        if meta is None:
            meta = MetaQuestion(tag_type=question.tag_type, value=question.suggested_value)
            groups[key] = meta
        meta.vendors.append(question.vendor)
        meta.questions.append(question)
        if vendor_groups is not None:
            group = find_group(vendor_groups, question.vendor)
            meta.total_products += group.product_count if group else 0

    metas = [m for m in groups.values() if len(m.vendors) > 1]
    metas.sort(key=lambda m: -len(m.vendors))
    return metas
