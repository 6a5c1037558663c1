from datetime import date
from types import SimpleNamespace

import pytest

from app.services.deduplication import (
    article_similarity,
    authors_similarity,
    date_similarity,
    find_duplicate_groups,
    normalize_author,
    normalize_text,
    text_similarity,
)


def _article(title=None, authors=None, journal=None, publication_date=None, doi=None, pmid=None):
    return SimpleNamespace(
        title=title,
        authors=authors or [],
        journal=journal,
        publication_date=publication_date,
        doi=doi,
        pmid=pmid,
    )


def test_normalize_text_check():
    assert normalize_text("  Yoga, for   LOW-back pain! ") == "yoga for lowback pain"


def test_normalize_author_drops_initials_check():
    assert normalize_author("Smith, J. A.") == "smith"


def test_text_similarity_check():
    assert text_similarity("yoga for back pain", "yoga for back pain") == 1.0
    assert text_similarity("", "yoga") == 0.0
    assert text_similarity("yoga for back pain", "statins and memory") < 0.2


def test_authors_similarity_check():
    assert authors_similarity(["Smith J", "Jones K"], ["Smith J.", "Jones K."]) == 1.0
    assert authors_similarity(["Smith J", "Jones K"], ["Smith J"]) == 0.5
    assert authors_similarity([], ["Smith J"]) == 0.0


@pytest.mark.parametrize("a, b, expected", [
    (date(2024, 3, 1), date(2024, 3, 20), 1.0),
    (date(2024, 3, 1), date(2024, 9, 1), 0.9),
    (date(2024, 3, 1), date(2025, 3, 1), 0.7),
    (date(2024, 3, 1), date(2027, 3, 1), 0.0),
])
def test_date_similarity_check(a, b, expected):
    assert date_similarity(a, b) == expected


def test_doi_match_is_certain_check():
    result = article_similarity(
        _article(title="Yoga for back pain", doi="10.1000/ABC"),
        _article(title="Completely different wording", doi="10.1000/abc"),
    )

    assert result.score == 1.0
    assert "doi" in result.matching_fields
    assert "title" not in result.matching_fields


def test_only_shared_fields_are_scored_check():
    result = article_similarity(
        _article(title="Yoga for chronic back pain", journal="Spine"),
        _article(title="Yoga for chronic back pain", doi="10.1/x"),
    )

    assert result.details == {"title": 1.0}
    assert result.score == 1.0


def test_different_studies_score_low_check():
    result = article_similarity(
        _article(title="Yoga for chronic back pain", authors=["Smith J"], publication_date=date(2020, 1, 1)),
        _article(title="Statins and memory decline", authors=["Lee K"], publication_date=date(2015, 1, 1)),
    )

    assert result.score < 0.2
    assert result.matching_fields == []


def test_find_duplicate_groups_check():
    first = _article(title="Yoga for chronic low back pain", authors=["Smith J", "Jones K"], journal="Spine")
    unrelated = _article(title="Statins and memory decline", authors=["Lee K"], journal="Neurology")
    repeat = _article(title="Yoga for chronic low back pain.", authors=["Smith J.", "Jones K."], journal="SPINE")
    by_pmid = _article(title="Yoga and back pain, a randomised trial", pmid="123")
    also_pmid = _article(title="A trial of yoga", pmid="123")

    groups = find_duplicate_groups([first, unrelated, repeat, by_pmid, also_pmid])

    assert len(groups) == 2
    assert groups[0].primary is first
    assert groups[0].duplicates == [repeat]
    assert set(groups[0].matching_fields) == {"title", "authors", "journal"}
    assert groups[1].primary is by_pmid
    assert groups[1].duplicates == [also_pmid]
    assert groups[1].similarity_score == 1.0


def test_find_duplicate_groups_threshold_check():
    a = _article(title="Yoga for chronic low back pain in adults")
    b = _article(title="Yoga for chronic low back pain in older adults")

    assert find_duplicate_groups([a, b], threshold=0.99) == []
    assert len(find_duplicate_groups([a, b], threshold=0.5)) == 1


def test_find_duplicate_groups_needs_two_articles_check():
    assert find_duplicate_groups([]) == []
    assert find_duplicate_groups([_article(title="Alone")]) == []
