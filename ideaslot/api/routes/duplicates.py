"""
duplicates.py
-------------
Maintenance endpoint that removes near-duplicate ideas.

Usage:
    1. POST /duplicates/remove - Bulk scan, or one pair via ``specificPair``
    2. GET  /duplicates/remove - Usage document
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import AliasChoices, BaseModel, Field

from ideaslot.api.dependencies import get_container, require_maintenance_auth
from ideaslot.container import ServiceContainer
from ideaslot.models import RemovalStrategy, SimilarityWeights
from ideaslot.similarity import DEFAULT_THRESHOLD, validate_threshold

router = APIRouter(prefix="/duplicates", tags=["duplicates"])
logger = logging.getLogger(__name__)


class SpecificPair(BaseModel):
    id1: Optional[str] = Field(default=None, validation_alias=AliasChoices("id1", "idea1Id"))
    id2: Optional[str] = Field(default=None, validation_alias=AliasChoices("id2", "idea2Id"))


class RemoveDuplicatesRequest(BaseModel):
    # Loosely typed so range and membership errors carry domain messages
    threshold: Any = DEFAULT_THRESHOLD
    weights: Optional[Dict[str, Any]] = None
    removeStrategy: Any = RemovalStrategy.KEEP_NEWER.value
    specificPair: Optional[SpecificPair] = None


@router.post("/remove", dependencies=[Depends(require_maintenance_auth)])
async def remove_duplicates(
    body: Optional[RemoveDuplicatesRequest] = None,
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    """
    Remove duplicate ideas with the requested retention strategy.

    Raises:
        400: Threshold outside [0, 1], unknown strategy, bad weights,
             or a specific pair with a missing or unknown id
        401: Missing or wrong bearer token outside development
        500: Idea store failure
    """
    body = body or RemoveDuplicatesRequest()
    # All input checks run before the store is touched
    threshold = validate_threshold(body.threshold)
    strategy = RemovalStrategy.parse(body.removeStrategy)
    weights = SimilarityWeights.from_dict(body.weights)

    remover = container.duplicate_remover()
    if body.specificPair is not None:
        report = await remover.remove_specific_pair(
            body.specificPair.id1,
            body.specificPair.id2,
            strategy=strategy,
            threshold=threshold,
            weights=weights,
        )
    else:
        report = await remover.remove_duplicates(threshold, weights, strategy)
    return report.to_dict()


@router.get("/remove")
async def remove_duplicates_usage() -> Dict[str, Any]:
    return {
        "message": "Duplicate idea removal endpoint",
        "usage": {
            "method": "POST",
            "headers": {"Authorization": "Bearer <CRON_AUTH_TOKEN>"},
            "body": {
                "threshold": f"number between 0 and 1 (default {DEFAULT_THRESHOLD})",
                "weights": {"title": 0.6, "description": 0.4},
                "removeStrategy": RemovalStrategy.values(),
                "specificPair": {"id1": "idea id", "id2": "idea id"},
            },
        },
        "strategies": {
            "keep-newer": "Remove the older idea of each pair",
            "keep-older": "Remove the newer idea of each pair",
            "keep-both": "Report duplicates without removing anything",
            "keep-neither": "Remove both ideas of each pair",
        },
    }
