"""
Duplicate Detection

Scores how likely two articles are the same study and groups a project's
articles into duplicate sets.

Scoring:
- equal DOI (case-insensitive) or equal PMID scores 1.0 outright
- otherwise a weighted mean over the fields both articles carry: title,
  authors, journal, publication date, DOI and PMID
- text similarity is 0.7 * word Jaccard + 0.3 * character-trigram Jaccard
  on normalized text
"""

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Set

DEFAULT_THRESHOLD = 0.85

# A field counts as matching at or above its threshold
FIELD_THRESHOLDS = {
    "doi": 1.0,
    "pmid": 1.0,
    "title": 0.85,
    "authors": 0.75,
    "journal": 0.8,
    "publication_date": 0.9,
}

FIELD_WEIGHTS = {
    "title": 0.4,
    "authors": 0.25,
    "journal": 0.15,
    "publication_date": 0.1,
    "doi": 0.05,
    "pmid": 0.05,
}

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_INITIAL = re.compile(r"\b\w\b")


# ============================================================
# Text similarity
# ============================================================

def normalize_text(text: str) -> str:
    """Lowercase, strip punctuation, collapse whitespace."""
    text = _PUNCTUATION.sub("", text.lower())
    return _WHITESPACE.sub(" ", text).strip()


def normalize_author(author: str) -> str:
    """Like normalize_text, but initials are dropped too."""
    author = _INITIAL.sub("", _PUNCTUATION.sub("", author.lower()))
    return _WHITESPACE.sub(" ", author).strip()


def jaccard(a: Set[str], b: Set[str]) -> float:
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def _words(text: str) -> Set[str]:
    return {w for w in text.split() if len(w) > 2}


def _trigrams(text: str) -> Set[str]:
    compact = _WHITESPACE.sub("", text)
    return {compact[i:i + 3] for i in range(len(compact) - 2)}


def text_similarity(a: str, b: str) -> float:
    """Similarity of two already normalized strings, 0..1."""
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    return jaccard(_words(a), _words(b)) * 0.7 + jaccard(_trigrams(a), _trigrams(b)) * 0.3


def authors_similarity(a: Sequence[str], b: Sequence[str]) -> float:
    """Share of authors with a close match on the other list."""
    if not a or not b:
        return 0.0

    others = [normalize_author(author) for author in b]
    matches = 0
    for author in a:
        name = normalize_author(author)
        if any(text_similarity(name, other) > 0.8 for other in others):
            matches += 1

    return matches / max(len(a), len(b))


def date_similarity(a: date, b: date) -> float:
    if a.year == b.year:
        return 1.0 if a.month == b.month else 0.9
    if abs(a.year - b.year) == 1:
        return 0.7
    return 0.0


# ============================================================
# Article similarity
# ============================================================

@dataclass
class SimilarityResult:
    score: float
    matching_fields: List[str] = field(default_factory=list)
    details: Dict[str, float] = field(default_factory=dict)


def article_similarity(a: Any, b: Any) -> SimilarityResult:
    """
    Compare two article-like objects.

    Only fields present on both sides take part in the score.
    """
    details: Dict[str, float] = {}

    if a.doi and b.doi:
        details["doi"] = 1.0 if a.doi.lower() == b.doi.lower() else 0.0
    if a.pmid and b.pmid:
        details["pmid"] = 1.0 if a.pmid == b.pmid else 0.0
    if a.title and b.title:
        details["title"] = text_similarity(normalize_text(a.title), normalize_text(b.title))
    if a.authors and b.authors:
        details["authors"] = authors_similarity(a.authors, b.authors)
    if a.journal and b.journal:
        details["journal"] = text_similarity(normalize_text(a.journal), normalize_text(b.journal))
    if a.publication_date and b.publication_date:
        details["publication_date"] = date_similarity(a.publication_date, b.publication_date)

    matching = [name for name, value in details.items() if value >= FIELD_THRESHOLDS[name]]

    if details.get("doi") == 1.0 or details.get("pmid") == 1.0:
        score = 1.0
    else:
        total_weight = sum(FIELD_WEIGHTS[name] for name in details)
        weighted = sum(value * FIELD_WEIGHTS[name] for name, value in details.items())
        score = weighted / total_weight if total_weight else 0.0

    return SimilarityResult(score=score, matching_fields=matching, details=details)


# ============================================================
# Grouping
# ============================================================

@dataclass
class DuplicateCluster:
    primary: Any
    duplicates: List[Any]
    similarity_score: float
    matching_fields: List[str]


def find_duplicate_groups(articles: Sequence[Any], threshold: Optional[float] = None) -> List[DuplicateCluster]:
    """
    Greedy grouping: each article not yet grouped becomes the primary of
    every later article scoring at or above the threshold against it.

    The primary is the earliest article in `articles`; callers pass them
    oldest first.
    """
    threshold = DEFAULT_THRESHOLD if threshold is None else threshold
    if len(articles) < 2:
        return []

    grouped: Set[int] = set()
    clusters: List[DuplicateCluster] = []

    for i, primary in enumerate(articles):
        if i in grouped:
            continue

        duplicates = []
        best = 0.0
        fields: List[str] = []
        for j in range(i + 1, len(articles)):
            if j in grouped:
                continue
            result = article_similarity(primary, articles[j])
            if result.score >= threshold:
                grouped.add(j)
                duplicates.append(articles[j])
                best = max(best, result.score)
                fields.extend(f for f in result.matching_fields if f not in fields)

        if duplicates:
            grouped.add(i)
            clusters.append(DuplicateCluster(
                primary=primary,
                duplicates=duplicates,
                similarity_score=best,
                matching_fields=fields,
            ))

    return clusters
