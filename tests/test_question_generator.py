"""
Question generator tests
Majority threshold, skip conditions and queue ordering
"""

import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from tagquest.models import EngineSettings, Product
from tagquest.question_generator import generate_questions, percent
from tagquest.vendor_aggregator import build_vendor_groups


def _vendor_products(vendor, genre_counts=None, untagged=0, decade_counts=None):
    """Products for one vendor: genre_counts/decade_counts map value -> count, plus untagged products."""
    products = []
    n = 0
    for genre, count in (genre_counts or {}).items():
        for _ in range(count):
            products.append(Product(f"{vendor}-{n}", f"{vendor} album {n}", vendor, existing_genre=genre))
            n += 1
    for decade, count in (decade_counts or {}).items():
        for _ in range(count):
            products.append(Product(f"{vendor}-{n}", f"{vendor} album {n}", vendor, existing_decade=decade))
            n += 1
    for _ in range(untagged):
        products.append(Product(f"{vendor}-{n}", f"{vendor} album {n}", vendor))
        n += 1
    return products


def _questions(*product_lists, **kwargs):
    products = [p for batch in product_lists for p in batch]
    return generate_questions(build_vendor_groups(products), **kwargs)


def test_percent_rounds_halves_up():
    assert percent(1, 8) == 13
    assert percent(2, 3) == 67
    assert percent(1, 3) == 33
    assert percent(1, 200) == 1
    assert percent(0, 5) == 0
    assert percent(3, 0) == 0


def test_threshold_is_inclusive_at_fifty():
    questions = _questions(_vendor_products('Rocker', {'Rock': 5}, untagged=5))
    genre = [q for q in questions if q.tag_type == 'genre']
    assert len(genre) == 1
    assert genre[0].existing_percent == 50
    assert genre[0].affected_count == 5


def test_below_threshold_yields_nothing():
    questions = _questions(_vendor_products('Rocker', {'Rock': 49}, untagged=51))
    assert questions == []


def test_fully_tagged_vendor_yields_nothing():
    questions = _questions(_vendor_products('Split', {'Rock': 5, 'Jazz': 5}))
    assert [q for q in questions if q.tag_type == 'genre'] == []


def test_untagged_vendor_yields_nothing():
    assert _questions(_vendor_products('Blank', untagged=10)) == []


def test_single_product_vendor_is_skipped():
    assert _questions(_vendor_products('Solo', {'Jazz': 1})) == []
    two = _questions(_vendor_products('Duo', {'Jazz': 1}, untagged=1))
    assert len(two) == 1, "Two products meet the minimum"


def test_excluded_vendors_are_skipped_after_normalization():
    questions = _questions(
        _vendor_products('various  artists', {'Jazz': 8}, untagged=2),
        _vendor_products('uDiscover Music', {'Jazz': 8}, untagged=2),
    )
    assert questions == []

    settings = EngineSettings(excluded_vendors=frozenset())
    assert len(_questions(_vendor_products('Various Artists', {'Jazz': 8}, untagged=2), settings=settings)) == 1


def test_question_fields():
    question = _questions(_vendor_products('A', {'Jazz': 6, 'Blues': 1}, untagged=3))[0]
    assert question.id == 'vendor-genre-A'
    assert question.text == 'Should all "A" products be "Jazz"?'
    assert question.context == '6 of 10 already tagged'
    assert question.impact == '+3 products'
    assert question.affected_count == 3
    assert question.type == 'vendor-genre'
    assert question.tag_type == 'genre'
    assert question.suggested_value == 'Jazz'
    assert question.existing_percent == 60


def test_vendor_gets_genre_and_decade_questions():
    products = _vendor_products('A', {'Jazz': 6}, untagged=4) + _vendor_products('B', decade_counts={'60C': 3}, untagged=1)
    ids = {q.id for q in _questions(products)}
    assert ids == {'vendor-genre-A', 'vendor-decade-B'}


def test_ordering_by_affected_then_percent():
    questions = _questions(
        _vendor_products('Sixty', {'Jazz': 15}, untagged=10),
        _vendor_products('Eighty', {'Rock': 40}, untagged=10),
        _vendor_products('Biggest', {'Pop': 12}, untagged=12),
    )
    assert [q.vendor for q in questions] == ['Biggest', 'Eighty', 'Sixty']
    assert [q.existing_percent for q in questions] == [50, 80, 60]


def test_answered_questions_are_filtered():
    products = _vendor_products('A', {'Jazz': 6}, untagged=4)
    assert _questions(products, answered_ids={'vendor-genre-A'}) == []
    assert len(_questions(products, answered_ids={'vendor-decade-A'})) == 1
    assert _questions(products, answered_ids={'vendor-genre-  a '}) == [], "Ids match on normalized vendor"
    assert _questions(products, answered_keys={('genre', 'a')}) == []


def test_custom_threshold():
    products = _vendor_products('A', {'Jazz': 6}, untagged=4)
    assert _questions(products, settings=EngineSettings(majority_threshold=70)) == []
