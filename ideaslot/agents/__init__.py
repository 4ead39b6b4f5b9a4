"""Research, ingestion and maintenance agents."""

from ideaslot.agents.duplicate_remover import DuplicateRemover, RemovalReport
from ideaslot.agents.idea_ingestion import IdeaIngestion, IngestionReport
from ideaslot.agents.research import (
    CollectorReport,
    RedditCollector,
    ResearchAggregator,
    ResearchResult,
    TwitterCollector,
    enhance_prompt_with_research,
)
from ideaslot.agents.trend_parser import ParseKind, ParseResult, parse_trend_response
from ideaslot.agents.twitter_batch import TwitterCategoryBatch

__all__ = [
    "DuplicateRemover",
    "RemovalReport",
    "IdeaIngestion",
    "IngestionReport",
    "CollectorReport",
    "RedditCollector",
    "ResearchAggregator",
    "ResearchResult",
    "TwitterCollector",
    "enhance_prompt_with_research",
    "ParseKind",
    "ParseResult",
    "parse_trend_response",
    "TwitterCategoryBatch",
]
