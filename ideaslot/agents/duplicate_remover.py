"""
Maintenance pass that deletes near-duplicate ideas from the store.

Two modes:

- **Bulk**: score every pair of stored ideas (oldest first), apply the
  retention strategy to each qualifying pair, and delete the union of
  losers with one batch call.
- **Specific pair**: skip the scan and apply the strategy to two given
  ids after checking that both exist.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ideaslot.database import IdeaStore, validate_not_empty
from ideaslot.exceptions import NotFoundError, ValidationError
from ideaslot.models import DuplicatePair, RemovalStrategy, SimilarityWeights
from ideaslot.similarity import (
    collect_removals,
    find_duplicate_pairs,
    idea_similarity,
    ids_to_remove,
    validate_threshold,
)

logger = logging.getLogger(__name__)


@dataclass
class RemovalReport:
    """What a removal pass found and deleted."""

    threshold: float
    weights: SimilarityWeights
    strategy: RemovalStrategy
    removed_ids: List[str] = field(default_factory=list)
    pairs: List[DuplicatePair] = field(default_factory=list)
    specific_pair: Optional[Tuple[str, str]] = None
    message: str = ""

    @property
    def removed_count(self) -> int:
        return len(self.removed_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "threshold": self.threshold,
            "weights": self.weights.to_dict(),
            "removeStrategy": self.strategy.value,
            "specificPair": (
                {"id1": self.specific_pair[0], "id2": self.specific_pair[1]}
                if self.specific_pair
                else None
            ),
            "duplicatePairs": [pair.to_dict() for pair in self.pairs],
            "removedCount": self.removed_count,
            "removedIds": list(self.removed_ids),
            "message": self.message,
        }


class DuplicateRemover:
    """Apply a retention strategy to duplicate ideas in the store.

    Args:
        store: Idea store used for reads and the batch delete.
    """

    def __init__(self, store: IdeaStore) -> None:
        self.store = store

    async def remove_duplicates(
        self,
        threshold: float = 0.7,
        weights: Optional[SimilarityWeights] = None,
        strategy: RemovalStrategy = RemovalStrategy.KEEP_NEWER,
    ) -> RemovalReport:
        """Scan all stored ideas and delete the losers of every duplicate pair.

        Raises:
            ValidationError: On an out-of-range threshold.
            DatabaseError: If reading or deleting fails.
        """
        threshold = validate_threshold(threshold)
        weights = weights or SimilarityWeights()

        ideas = await self.store.fetch_ideas()
        pairs = find_duplicate_pairs(ideas, threshold, weights)
        removed = collect_removals(pairs, strategy)
        logger.info(
            "[DEDUP] %d ideas, %d duplicate pairs, %d to remove (%s)",
            len(ideas),
            len(pairs),
            len(removed),
            strategy.value,
        )
        if removed:
            await self.store.delete_ideas(removed)

        return RemovalReport(
            threshold=threshold,
            weights=weights,
            strategy=strategy,
            removed_ids=removed,
            pairs=pairs,
            message=(
                f"Found {len(pairs)} duplicate pairs, removed {len(removed)} ideas"
            ),
        )

    async def remove_specific_pair(
        self,
        id1: str,
        id2: str,
        strategy: RemovalStrategy = RemovalStrategy.KEEP_NEWER,
        threshold: float = 0.7,
        weights: Optional[SimilarityWeights] = None,
    ) -> RemovalReport:
        """Apply *strategy* to two given ideas without a similarity scan.

        Raises:
            ValidationError: If an id is blank or both ids are the same.
            NotFoundError: If either idea does not exist.
            DatabaseError: If reading or deleting fails.
        """
        validate_not_empty(id1, "specificPair.id1")
        validate_not_empty(id2, "specificPair.id2")
        if id1 == id2:
            raise ValidationError("specificPair ids must be different")
        threshold = validate_threshold(threshold)
        weights = weights or SimilarityWeights()

        found = {record.id: record for record in await self.store.get_ideas_by_ids([id1, id2])}
        if id1 not in found or id2 not in found:
            raise NotFoundError("One or both ideas not found")

        first, second = found[id1], found[id2]
        score = idea_similarity(first, second, weights)
        removed = ids_to_remove(first, second, strategy)
        logger.info(
            "[DEDUP] Specific pair %s/%s (similarity %.3f): removing %s",
            id1,
            id2,
            score,
            removed or "nothing",
        )
        if removed:
            await self.store.delete_ideas(removed)

        return RemovalReport(
            threshold=threshold,
            weights=weights,
            strategy=strategy,
            removed_ids=removed,
            pairs=[DuplicatePair(first, second, score)],
            specific_pair=(id1, id2),
            message=f"Processed specific pair, removed {len(removed)} ideas",
        )
