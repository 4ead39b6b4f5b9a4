"""
Similarity scoring and duplicate detection for business ideas.

Text similarity is a token-set comparison built on
``difflib.SequenceMatcher``:

- both sides are lowercased, punctuation becomes whitespace, whitespace
  collapses;
- equal normalized strings score 1.0 (this includes two empty strings);
- disjoint token sets, or one empty side, score 0.0;
- otherwise the score is the best ratio among the sorted shared tokens and
  the shared tokens followed by each side's remainder.

Every pairwise ratio is computed on a sorted pair, so the score is
symmetric.  Idea similarity is the weighted sum of the title and
description scores, clamped to ``[0, 1]`` and not renormalized.
"""

import logging
import re
from difflib import SequenceMatcher
from typing import Iterable, List, Optional, Sequence, Set

from ideaslot.exceptions import ValidationError
from ideaslot.models import (
    DuplicatePair,
    IdeaRecord,
    RemovalStrategy,
    SimilarityResult,
    SimilarityWeights,
)

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.7

_NON_WORD = re.compile(r"[^\w\s]|_")


def validate_threshold(value: object) -> float:
    """Return *value* as a float in ``[0, 1]``.

    Raises:
        ValidationError: If *value* is not a number within ``[0, 1]``.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("threshold must be a number")
    if not 0.0 <= value <= 1.0:
        raise ValidationError(f"threshold must be between 0 and 1, got {value}")
    return float(value)


def normalize(text: Optional[str]) -> str:
    """Lowercase, drop punctuation and collapse whitespace."""
    if not text:
        return ""
    return " ".join(_NON_WORD.sub(" ", text.lower()).split())


def _ratio(a: str, b: str) -> float:
    first, second = sorted((a, b))
    return SequenceMatcher(None, first, second, autojunk=False).ratio()


def text_similarity(a: Optional[str], b: Optional[str]) -> float:
    """Symmetric similarity of two strings in ``[0, 1]``."""
    left, right = normalize(a), normalize(b)
    if left == right:
        return 1.0
    if not left or not right:
        return 0.0

    tokens_a: Set[str] = set(left.split())
    tokens_b: Set[str] = set(right.split())
    shared = tokens_a & tokens_b
    if not shared:
        return 0.0

    base = " ".join(sorted(shared))
    with_a = " ".join([base, *sorted(tokens_a - shared)]).strip()
    with_b = " ".join([base, *sorted(tokens_b - shared)]).strip()
    return max(_ratio(base, with_a), _ratio(base, with_b), _ratio(with_a, with_b))


def idea_similarity(
    a: IdeaRecord,
    b: IdeaRecord,
    weights: Optional[SimilarityWeights] = None,
) -> float:
    """Weighted title/description similarity, clamped to ``[0, 1]``."""
    weights = weights or SimilarityWeights()
    score = (
        text_similarity(a.title, b.title) * weights.title
        + text_similarity(a.description, b.description) * weights.description
    )
    return min(1.0, max(0.0, score))


def find_similar(
    candidate: IdeaRecord,
    existing: Iterable[IdeaRecord],
    threshold: float = DEFAULT_THRESHOLD,
    weights: Optional[SimilarityWeights] = None,
) -> SimilarityResult:
    """Best-scoring match of *candidate* among *existing*.

    Ties keep the first record encountered.
    """
    best_score = 0.0
    best_record: Optional[IdeaRecord] = None
    for record in existing:
        score = idea_similarity(candidate, record, weights)
        if best_record is None or score > best_score:
            best_score = score
            best_record = record
    is_similar = best_record is not None and best_score >= threshold
    return SimilarityResult(
        score=best_score,
        is_similar=is_similar,
        matched_record=best_record if is_similar else None,
    )


def filter_similar(
    ideas: Sequence[IdeaRecord],
    threshold: float = DEFAULT_THRESHOLD,
    weights: Optional[SimilarityWeights] = None,
) -> List[IdeaRecord]:
    """Keep the first idea of every group of mutually similar ideas."""
    kept: List[IdeaRecord] = []
    for idea in ideas:
        if not find_similar(idea, kept, threshold, weights).is_similar:
            kept.append(idea)
    return kept


def find_duplicate_pairs(
    records: Sequence[IdeaRecord],
    threshold: float = DEFAULT_THRESHOLD,
    weights: Optional[SimilarityWeights] = None,
) -> List[DuplicatePair]:
    """Every unordered pair ``(i, j), i < j`` scoring at or above *threshold*."""
    pairs: List[DuplicatePair] = []
    for i in range(len(records)):
        for j in range(i + 1, len(records)):
            score = idea_similarity(records[i], records[j], weights)
            if score >= threshold:
                pairs.append(DuplicatePair(records[i], records[j], score))
    logger.debug(
        "[DEDUP] %d duplicate pairs among %d records (threshold=%.2f)",
        len(pairs),
        len(records),
        threshold,
    )
    return pairs


def _first_is_newer(first: IdeaRecord, second: IdeaRecord) -> bool:
    # Ties and missing timestamps treat the second record as newer
    if first.created_at is None or second.created_at is None:
        return False
    return first.created_at > second.created_at


def ids_to_remove(
    first: IdeaRecord,
    second: IdeaRecord,
    strategy: RemovalStrategy,
) -> List[str]:
    """Record ids the retention *strategy* removes from one pair."""
    if strategy is RemovalStrategy.KEEP_BOTH:
        return []
    if strategy is RemovalStrategy.KEEP_NEITHER:
        return [rid for rid in (first.id, second.id) if rid is not None]

    if _first_is_newer(first, second):
        newer, older = first, second
    else:
        newer, older = second, first
    loser = older if strategy is RemovalStrategy.KEEP_NEWER else newer
    return [loser.id] if loser.id is not None else []


def collect_removals(
    pairs: Iterable[DuplicatePair],
    strategy: RemovalStrategy,
) -> List[str]:
    """Union of removals over all pairs; each id appears once, in first-seen order."""
    removed: List[str] = []
    seen: Set[str] = set()
    for pair in pairs:
        for rid in ids_to_remove(pair.idea1, pair.idea2, strategy):
            if rid not in seen:
                seen.add(rid)
                removed.append(rid)
    return removed
