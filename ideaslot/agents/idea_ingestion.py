"""
Ingestion gate for generated ideas.

Each candidate moves ``Pending -> Unique | Duplicate``.  A candidate is a
duplicate when it is similar to a stored idea or to a candidate accepted
earlier in the same batch.  Unique candidates are mapped to storage
columns and inserted in one batch; duplicates are only reported.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ideaslot.database import IdeaStore
from ideaslot.exceptions import ValidationError
from ideaslot.models import IdeaRecord, SimilarityWeights
from ideaslot.similarity import find_similar, validate_threshold
from ideaslot.utils import utc_now

logger = logging.getLogger(__name__)

# Request-side camelCase -> storage snake_case
FIELD_MAP: Dict[str, str] = {
    "marketOpportunity": "market_opportunity",
    "targetAudience": "target_audience",
    "revenueModel": "revenue_model",
    "keyChallenges": "key_challenges",
    "painScore": "pain_score",
}
PASSTHROUGH_FIELDS = ("sentiment", "emotion")


def to_storage_row(
    candidate: Dict[str, Any],
    position: int,
    prompt: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Map a candidate idea onto ``business_ideas`` columns with defaults."""
    now = now or utc_now()
    row: Dict[str, Any] = {
        "title": candidate.get("title") or f"Idea {position}",
        "description": candidate.get("description") or "No description provided",
        "category": candidate.get("category") or "Tech",
        "prompt": prompt if prompt is not None else candidate.get("prompt", ""),
        "date": now.date().isoformat(),
        "created_at": now.isoformat(),
    }
    for camel, snake in FIELD_MAP.items():
        value = candidate.get(camel, candidate.get(snake))
        if value is not None:
            row[snake] = value
    for name in PASSTHROUGH_FIELDS:
        if candidate.get(name) is not None:
            row[name] = candidate[name]
    return row


@dataclass
class IngestionReport:
    inserted: List[Dict[str, Any]] = field(default_factory=list)
    duplicates: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def message(self) -> str:
        return (
            f"Added {len(self.inserted)} ideas, skipped {len(self.duplicates)} duplicates"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "message": self.message,
            "ideas": self.inserted,
            "count": len(self.inserted),
            "duplicates": self.duplicates,
        }


class IdeaIngestion:
    """Deduplicate candidate ideas and persist the unique ones.

    Args:
        store: Idea store for the existing-idea scan and the batch insert.
        threshold: Default similarity threshold.
        weights: Default field weights.
    """

    def __init__(
        self,
        store: IdeaStore,
        threshold: float = 0.7,
        weights: Optional[SimilarityWeights] = None,
    ) -> None:
        self.store = store
        self.threshold = validate_threshold(threshold)
        self.weights = weights or SimilarityWeights()

    async def ingest(
        self,
        candidates: List[Dict[str, Any]],
        prompt: Optional[str] = None,
        threshold: Optional[float] = None,
    ) -> IngestionReport:
        """Insert the candidates that are not duplicates.

        Raises:
            ValidationError: If *candidates* is empty or malformed.
            DatabaseError: If the store read or insert fails.
        """
        if not isinstance(candidates, list) or not candidates:
            raise ValidationError("ideas must be a non-empty list")
        threshold = self.threshold if threshold is None else validate_threshold(threshold)

        existing = await self.store.fetch_ideas()
        accepted: List[IdeaRecord] = []
        rows: List[Dict[str, Any]] = []
        report = IngestionReport()
        now = utc_now()

        for position, candidate in enumerate(candidates, start=1):
            if not isinstance(candidate, dict):
                raise ValidationError(f"idea #{position} must be an object")
            row = to_storage_row(candidate, position, prompt, now)
            record = IdeaRecord.from_row(row)
            match = find_similar(record, [*existing, *accepted], threshold, self.weights)
            if match.is_similar:
                similar_to = match.matched_record
                report.duplicates.append({
                    "idea": {"title": record.title, "description": record.description},
                    "similarTo": {
                        "id": similar_to.id if similar_to else None,
                        "title": similar_to.title if similar_to else None,
                    },
                    "similarity": round(match.score, 4),
                })
                continue
            accepted.append(record)
            rows.append(row)

        report.inserted = await self.store.insert_ideas(rows)
        logger.info("[DEDUP] %s", report.message)
        return report
