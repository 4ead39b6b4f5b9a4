"""
Twitter category batch: one recent-search per category, resumable.

Wraps the generic :class:`~ideaslot.scheduling.BatchProcessor` with the
Twitter client, a ``{category}`` query template, and the response shape
of the batch endpoint.
"""

import logging
from typing import Any, Dict, List, Optional

from ideaslot.config import DEFAULT_CATEGORY_TEMPLATE
from ideaslot.exceptions import ConfigurationError, ValidationError
from ideaslot.scheduling.batch_processor import BatchProcessor, unique_labels
from ideaslot.tools.twitter import TwitterClient

logger = logging.getLogger(__name__)

PLACEHOLDER = "{category}"


def validate_categories(categories: Any) -> List[str]:
    """Non-empty list of non-blank strings, duplicates collapsed.

    Raises:
        ValidationError: On a missing, empty or malformed list.
    """
    if not isinstance(categories, list) or not categories:
        raise ValidationError("categories must be a non-empty array")
    cleaned = []
    for category in categories:
        if not isinstance(category, str) or not category.strip():
            raise ValidationError("every category must be a non-empty string")
        cleaned.append(category.strip())
    return unique_labels(cleaned)


def validate_template(template: Optional[str], default: str = DEFAULT_CATEGORY_TEMPLATE) -> str:
    if template is None:
        return default
    if PLACEHOLDER not in template:
        raise ValidationError(f"searchQueryTemplate must contain {PLACEHOLDER}")
    return template


class TwitterCategoryBatch:
    """Search Twitter once per category through the Twitter scheduler.

    Args:
        client: Twitter client used by every request.
        processor: Batch processor bound to the Twitter scheduler.
        max_results: Tweets requested per category.
        default_template: Query template used when a run passes none.
    """

    def __init__(
        self,
        client: TwitterClient,
        processor: BatchProcessor,
        max_results: int = 20,
        default_template: str = DEFAULT_CATEGORY_TEMPLATE,
    ) -> None:
        if PLACEHOLDER not in default_template:
            raise ConfigurationError(
                f"research.category_query_template must contain {PLACEHOLDER}"
            )
        self.client = client
        self.processor = processor
        self.max_results = max_results
        self.default_template = default_template

    @property
    def is_available(self) -> bool:
        return self.client.is_available and self.processor.scheduler.is_available

    def unavailable_reason(self) -> str:
        capability = self.client.capability
        if capability.is_available:
            capability = self.processor.scheduler.capability
        return capability.reason or "Twitter API is not available"

    async def run(
        self,
        categories: Any,
        template: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Process *categories* and return the endpoint payload.

        Raises:
            ValidationError: On bad categories or a template without
                ``{category}``.
        """
        labels = validate_categories(categories)
        template = validate_template(template, self.default_template)

        if not self.is_available:
            reason = self.unavailable_reason()
            logger.warning("[BATCH] Twitter batch skipped: %s", reason)
            return {
                "success": False,
                "error": f"Twitter API not available: {reason}",
                "results": {},
                "state": None,
            }

        def build(category: str):
            query = template.replace(PLACEHOLDER, category)
            return lambda: self.client.search_recent(query, max_results=self.max_results)

        state = await self.processor.process_all(labels, build)
        results = {
            label: state.results[label].to_dict()
            for label in labels
            if label in state.results
        }
        succeeded = sum(1 for result in results.values() if result["success"])
        return {
            "success": True,
            "results": results,
            "state": state.to_dict(),
            "message": (
                f"Processed {len(results)} categories: "
                f"{succeeded} succeeded, {len(results) - succeeded} failed"
            ),
        }

    def status(self) -> Dict[str, Any]:
        state = self.processor.status()
        return {
            "available": self.is_available,
            "state": state.to_dict() if state else None,
            "rateLimitInfo": self.processor.scheduler.rate_limit_info().to_dict(),
        }

    def reset(self) -> bool:
        return self.processor.reset()
