"""
Vendor Aggregator Module
Groups catalog products by vendor and counts their existing genre and decade tags
"""
import logging
from typing import Dict, Iterable, List, Optional

from .models import Product, VendorGroup, normalize_vendor


logger = logging.getLogger('tagquest.vendor_aggregator')


def build_vendor_groups(products: Iterable[Product]) -> Dict[str, VendorGroup]:
    """
    Group products by normalized vendor name

    The first spelling seen for a vendor becomes the group's display name.
    Frequency tables only count non-empty existing values.

    Args:
        products: Catalog products

    Returns:
        Dict mapping normalized vendor key to its VendorGroup
    """
    groups: Dict[str, VendorGroup] = {}

    for product in products:
        key = product.vendor_key
        group = groups.get(key)
        if group is None:
            group = VendorGroup(vendor=(product.vendor or '').strip())
            groups[key] = group
        group.products.append(product)

        if product.existing_genre:
            group.existing_genres[product.existing_genre] += 1
        if product.existing_decade:
            group.existing_decades[product.existing_decade] += 1

    logger.debug(f"Aggregated {sum(g.product_count for g in groups.values())} products into {len(groups)} vendors")
    return groups


def find_group(groups: Dict[str, VendorGroup], vendor: str) -> Optional[VendorGroup]:
    return groups.get(normalize_vendor(vendor))


def untagged_products(group: VendorGroup, tag_type: str) -> List[Product]:
    """Products of a vendor that carry no existing value for tag_type."""
    return [p for p in group.products if not p.existing_value(tag_type)]
