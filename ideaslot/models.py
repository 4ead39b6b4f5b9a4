"""
Idea and deduplication data models.

- ``IdeaRecord``: A persisted business idea row from ``business_ideas``.
- ``SimilarityWeights``: Per-field weights for the idea similarity score.
- ``SimilarityResult``: Best match of a candidate against existing records.
- ``DuplicatePair``: Two records scoring at or above the threshold.
- ``RemovalStrategy``: Which side of a duplicate pair survives.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ideaslot.exceptions import ValidationError
from ideaslot.utils import parse_timestamp

# Enrichment columns stored alongside the core fields
IDEA_EXTRA_FIELDS = (
    "market_opportunity",
    "target_audience",
    "revenue_model",
    "key_challenges",
    "sentiment",
    "emotion",
    "pain_score",
    "prompt",
    "date",
)


# =============================================================================
# IDEA RECORD
# =============================================================================


@dataclass
class IdeaRecord:
    """A business idea as stored in ``business_ideas``.

    Attributes:
        id: Store-assigned identifier (``None`` before insertion).
        title: Short idea name.
        description: Longer free-text description.
        category: Idea category (defaults to ``"Tech"`` at ingestion).
        created_at: Creation timestamp used by the retention strategies.
        extra: Enrichment columns (market opportunity, sentiment, ...).
    """

    id: Optional[str]
    title: str
    description: str = ""
    category: Optional[str] = None
    created_at: Optional[datetime] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "IdeaRecord":
        """Build a record from a store row or a plain candidate dict."""
        raw_id = row.get("id")
        return cls(
            id=str(raw_id) if raw_id is not None else None,
            title=row.get("title") or "",
            description=row.get("description") or "",
            category=row.get("category"),
            created_at=parse_timestamp(row.get("created_at")),
            extra={k: row[k] for k in IDEA_EXTRA_FIELDS if k in row},
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        payload.update(self.extra)
        return payload


# =============================================================================
# SIMILARITY
# =============================================================================


@dataclass(frozen=True)
class SimilarityWeights:
    """Field weights for :func:`ideaslot.similarity.idea_similarity`.

    Weights are not renormalized.  Callers passing weights that sum above
    1.0 get a score that is clamped to 1.0.
    """

    title: float = 0.6
    description: float = 0.4

    @classmethod
    def from_dict(cls, payload: Optional[Dict[str, Any]]) -> "SimilarityWeights":
        """Parse a ``{title, description}`` mapping, filling in defaults.

        Raises:
            ValidationError: If a weight is not a non-negative number.
        """
        if not payload:
            return cls()
        defaults = cls()
        values = {}
        for name in ("title", "description"):
            value = payload.get(name, getattr(defaults, name))
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(f"weights.{name} must be a number")
            if value < 0:
                raise ValidationError(f"weights.{name} cannot be negative")
            values[name] = float(value)
        return cls(**values)

    def to_dict(self) -> Dict[str, float]:
        return {"title": self.title, "description": self.description}


@dataclass
class SimilarityResult:
    """Best match of a candidate against a set of existing records."""

    score: float
    is_similar: bool
    matched_record: Optional[IdeaRecord] = None


@dataclass
class DuplicatePair:
    """Two records whose similarity reached the threshold."""

    idea1: IdeaRecord
    idea2: IdeaRecord
    similarity: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "idea1": {"id": self.idea1.id, "title": self.idea1.title},
            "idea2": {"id": self.idea2.id, "title": self.idea2.title},
            "similarity": round(self.similarity, 4),
        }


class RemovalStrategy(Enum):
    """Retention rule applied to a duplicate pair."""

    KEEP_NEWER = "keep-newer"
    KEEP_OLDER = "keep-older"
    KEEP_BOTH = "keep-both"
    KEEP_NEITHER = "keep-neither"

    @classmethod
    def parse(cls, value: str) -> "RemovalStrategy":
        """Look up a strategy by its wire value.

        Raises:
            ValidationError: If *value* names no strategy.
        """
        try:
            return cls(value)
        except ValueError:
            valid = [s.value for s in cls]
            raise ValidationError(
                f"Invalid removeStrategy '{value}'. Must be one of: {', '.join(valid)}"
            ) from None

    @classmethod
    def values(cls) -> List[str]:
        return [s.value for s in cls]
