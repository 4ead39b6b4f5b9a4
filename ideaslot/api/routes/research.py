"""
research.py
-----------
Research endpoints: the resumable Twitter category batch and an ad hoc
trigger for a single collector.

Usage:
    1. POST /research/twitter-batch - Search Twitter once per category
    2. GET  /research/twitter-batch - Current batch state and usage
    3. GET  /research/test?platform=reddit|twitter|combined
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ideaslot.agents.research import FALLBACK_TWITTER
from ideaslot.agents.twitter_batch import validate_categories
from ideaslot.api.dependencies import get_container
from ideaslot.container import ServiceContainer
from ideaslot.exceptions import ValidationError

router = APIRouter(prefix="/research", tags=["research"])
logger = logging.getLogger(__name__)

PLATFORMS = ("reddit", "twitter", "combined")


class TwitterBatchRequest(BaseModel):
    categories: Any = None
    searchQueryTemplate: Optional[str] = None
    resetState: bool = False


@router.post("/twitter-batch")
async def run_twitter_batch(
    body: Optional[TwitterBatchRequest] = None,
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    """
    Run one search per category through the Twitter scheduler.

    Categories completed by an earlier run are skipped unless
    ``resetState`` is set.  Twitter being unavailable is reported as
    ``success: false`` with status 200.

    Raises:
        400: Missing or empty categories, or a template without {category}
    """
    body = body or TwitterBatchRequest()
    validate_categories(body.categories)
    batch = container.twitter_batch
    if body.resetState:
        batch.reset()
    return await batch.run(body.categories, body.searchQueryTemplate)


@router.get("/twitter-batch")
async def twitter_batch_status(
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    return {
        **container.twitter_batch.status(),
        "usage": {
            "method": "POST",
            "body": {
                "categories": ["tech", "health"],
                "searchQueryTemplate": container.twitter_batch.default_template,
                "resetState": False,
            },
        },
    }


@router.get("/test")
async def test_research(
    platform: str = "combined",
    topic: str = "",
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    """
    Trigger one collector, or the combined aggregator, on demand.

    Raises:
        400: Unknown platform
    """
    if platform not in PLATFORMS:
        raise ValidationError(
            f"Invalid platform '{platform}'. Must be one of: {', '.join(PLATFORMS)}"
        )

    if platform == "twitter":
        return {
            "success": False,
            "platform": "twitter",
            "error": "Twitter research is currently disabled",
            "trends": list(FALLBACK_TWITTER),
        }

    if platform == "reddit":
        report = await container.reddit_collector.collect(topic)
        return {"platform": "reddit", **report.to_dict()}

    result = await container.aggregator.get_combined_research(topic)
    return {"platform": "combined", **result.to_dict()}
