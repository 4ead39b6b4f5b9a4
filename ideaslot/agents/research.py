"""
Research Aggregator -- turns Reddit and Twitter chatter into trend strings.

Each collector gathers raw text through its provider's scheduler, sends
the concatenated text to the LLM once with an extraction prompt, and
parses the answer with :func:`~ideaslot.agents.trend_parser.parse_trend_response`.

Degradation rules
-----------------
- A collector that is unconfigured, disabled, or fails reports
  ``success=False`` together with its static fallback list; it never raises.
- The aggregator skips Twitter entirely when it is unavailable.  When both
  sources run they are gathered with ``return_exceptions=True`` so one
  failure never cancels the other.
- Trends from succeeded sources are merged, exact duplicates removed in
  order, and the list capped.  An empty merge falls back to
  ``FALLBACK_TRENDS``; the caller always receives trends.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from ideaslot.agents.trend_parser import ParseKind, parse_trend_response
from ideaslot.config import ResearchConfig
from ideaslot.exceptions import IdeaSlotError, RetryExhaustedError, SourceUnavailableError
from ideaslot.scheduling.request_scheduler import RequestScheduler
from ideaslot.tools.claude_client import ClaudeClient
from ideaslot.tools.reddit import RedditClient
from ideaslot.tools.twitter import TwitterClient

logger = logging.getLogger("Research")

COLLECTOR_ERRORS = (IdeaSlotError, httpx.HTTPError)

# =============================================================================
# FALLBACK DATA
# =============================================================================

FALLBACK_TRENDS: List[str] = [
    "Sustainable energy solutions",
    "AI-powered productivity tools",
    "Remote work collaboration platforms",
    "E-commerce optimization",
    "Mental health apps",
    "Micro-SaaS solutions",
    "NFT marketplaces",
    "Crypto payment systems",
    "Virtual reality education",
    "Smart home automation",
]

FALLBACK_TWITTER: List[str] = [
    "#BusinessTips",
    "#StartUpLife",
    "#Entrepreneurship",
    "#Innovation",
    "#TechTrends",
    "#DigitalMarketing",
    "#ProductivityHacks",
    "#SaaS",
    "#Ecommerce",
    "#FinTech",
]

FALLBACK_REDDIT: List[str] = [
    "Need better tools for tracking project expenses and budgeting",
    "Frustration with managing multiple social media accounts manually",
    "Lack of affordable HR tools for small teams",
    "Difficulty finding reliable freelance talent quickly",
    "Pain point with inventory management for physical products",
    "Need for automated lead generation for service businesses",
    "Struggling with SEO tools that provide actionable insights",
    "Looking for simple accounting software without complexity",
    "Need tools for scheduling and automating content creation",
    "Pain with customer feedback collection and analysis",
]

# =============================================================================
# PROMPTS
# =============================================================================

EXTRACTION_PROMPT = """Analyze the following {medium} and extract key user pain points, unmet needs, and potential business opportunities for tools/services. Focus on frustration, gaps in existing solutions, and desires for new tools.
{focus}
{label}:
{text}

Summarize the most common and significant pain points, tool gaps, and user needs. Respond with a JSON array of strings, where each string is a specific pain point or need. Limit to {limit} items. Example format: ["Pain point 1", "Pain point 2", "Pain point 3"]"""

SENTIMENT_PROMPT = """Analyze the sentiment and primary emotion of the following text.

Text to Analyze:
\"\"\"
{text}
\"\"\"

Respond with a JSON object with two keys: "sentiment" and "emotion".
- "sentiment" should be one of: "Positive", "Neutral", "Negative".
- "emotion" should be one of: "Frustration", "Anger", "Desperation", "Hopeful", "Excitement", "Curiosity", "Neutral"."""

SENTIMENTS = {"Positive", "Neutral", "Negative"}
EMOTIONS = {"Frustration", "Anger", "Desperation", "Hopeful", "Excitement", "Curiosity", "Neutral"}
NEUTRAL_SENTIMENT: Dict[str, str] = {"sentiment": "Neutral", "emotion": "Neutral"}

TEXT_SEPARATOR = "\n\n---\n\n"


# =============================================================================
# RESULT TYPES
# =============================================================================


@dataclass
class CollectorReport:
    """Outcome of one collector run.  ``trends`` is the fallback list on failure."""

    source: str
    success: bool
    trends: List[str]
    parse_kind: Optional[ParseKind] = None
    posts_found: int = 0
    error: Optional[str] = None
    sentiment: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": self.success,
            "source": self.source,
            "trends": list(self.trends),
            "postsFound": self.posts_found,
            "usedAi": self.parse_kind is not None,
        }
        if self.parse_kind is not None:
            payload["parseKind"] = self.parse_kind.value
        if self.error:
            payload["error"] = self.error
        if self.sentiment is not None:
            payload["sentimentData"] = self.sentiment
        return payload


@dataclass
class ResearchResult:
    """Combined research output; ``trends`` is never empty."""

    success: bool
    trends: List[str]
    sources: Dict[str, bool]
    error: Optional[str] = None
    sentiment: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": self.success,
            "trends": list(self.trends),
            "sources": dict(self.sources),
        }
        if self.error:
            payload["error"] = self.error
        if self.sentiment is not None:
            payload["sentimentData"] = self.sentiment
        return payload


# =============================================================================
# SHARED LLM HELPERS
# =============================================================================


async def analyze_sentiment(llm: Optional[ClaudeClient], text: str) -> Dict[str, str]:
    """Classify overall sentiment and emotion; neutral on any failure."""
    if llm is None:
        return dict(NEUTRAL_SENTIMENT)
    try:
        data = await llm.generate_structured(SENTIMENT_PROMPT.format(text=text))
    except RetryExhaustedError as exc:
        logger.warning("[RESEARCH] Sentiment analysis failed: %s", exc)
        return dict(NEUTRAL_SENTIMENT)
    sentiment = data.get("sentiment") if isinstance(data, dict) else None
    emotion = data.get("emotion") if isinstance(data, dict) else None
    if sentiment not in SENTIMENTS or emotion not in EMOTIONS:
        logger.warning("[RESEARCH] Unexpected sentiment payload: %r", data)
        return dict(NEUTRAL_SENTIMENT)
    return {"sentiment": sentiment, "emotion": emotion}


class BaseCollector:
    """Shared extraction flow for the Reddit and Twitter collectors."""

    source: str = ""
    medium: str = ""
    label: str = ""
    fallback: List[str] = []

    def __init__(
        self,
        scheduler: RequestScheduler,
        llm: Optional[ClaudeClient],
        config: ResearchConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.scheduler = scheduler
        self.llm = llm
        self.config = config
        self._sleep = sleep

    def failure_report(self, error: str, posts_found: int = 0) -> CollectorReport:
        logger.warning("[RESEARCH] %s using fallback trends: %s", self.source, error)
        return CollectorReport(
            source=self.source,
            success=False,
            trends=list(self.fallback),
            posts_found=posts_found,
            error=error,
        )

    async def _extract(
        self,
        texts: List[str],
        topic: str,
        sentiment: Optional[Dict[str, str]] = None,
    ) -> CollectorReport:
        if self.llm is None:
            return self.failure_report("LLM is not configured", len(texts))

        focus = f"\nResearch focus: {topic}\n" if topic else ""
        prompt = EXTRACTION_PROMPT.format(
            medium=self.medium,
            focus=focus,
            label=self.label,
            text=TEXT_SEPARATOR.join(texts),
            limit=self.config.max_trends,
        )
        try:
            response = await self.llm.generate(prompt)
        except RetryExhaustedError as exc:
            return self.failure_report(f"Trend extraction failed: {exc.last_error}", len(texts))

        parsed = parse_trend_response(response, self.config.max_trends)
        logger.info(
            "[RESEARCH] %s extraction parsed as %s (%d items)",
            self.source,
            parsed.kind.value,
            len(parsed.items),
        )
        if parsed.is_empty:
            return self.failure_report("Failed to extract needs from AI response", len(texts))
        if parsed.kind is ParseKind.SENTENCES and not self.config.accept_sentences:
            return self.failure_report("AI response was not a list", len(texts))

        return CollectorReport(
            source=self.source,
            success=True,
            trends=parsed.items,
            parse_kind=parsed.kind,
            posts_found=len(texts),
            sentiment=sentiment,
        )


# =============================================================================
# REDDIT
# =============================================================================


class RedditCollector(BaseCollector):
    """Search a fixed subreddit set with a fixed query set.

    Per-query and per-subreddit delays are layered on top of the Reddit
    scheduler's pacing.
    """

    source = "reddit"
    medium = "Reddit posts"
    label = "Posts"
    fallback = FALLBACK_REDDIT

    def __init__(
        self,
        client: RedditClient,
        scheduler: RequestScheduler,
        llm: Optional[ClaudeClient],
        config: ResearchConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        super().__init__(scheduler, llm, config, sleep)
        self.client = client

    @property
    def is_available(self) -> bool:
        return self.client.is_available and self.scheduler.is_available

    async def collect(self, topic: str = "") -> CollectorReport:
        if not self.is_available:
            reason = self.client.capability.reason or self.scheduler.capability.reason
            return self.failure_report(f"Reddit API not configured: {reason}")

        texts = await self._gather_posts()
        if not texts:
            return self.failure_report("No relevant posts found in the specified subreddits")

        sentiment = await analyze_sentiment(self.llm, TEXT_SEPARATOR.join(texts))
        return await self._extract(texts, topic, sentiment)

    async def _gather_posts(self) -> List[str]:
        texts: List[str] = []
        queries = self.config.active_queries

        for subreddit in self.config.subreddits:
            for query in queries:
                try:
                    texts.extend(await self._search(subreddit, query))
                except SourceUnavailableError as exc:
                    logger.warning("[RESEARCH] Reddit became unavailable: %s", exc)
                    return texts
                except COLLECTOR_ERRORS as exc:
                    logger.warning(
                        "[RESEARCH] Error searching %r in r/%s: %s", query, subreddit, exc
                    )
                    if "ratelimit" in str(exc).lower().replace(" ", ""):
                        logger.info(
                            "[RESEARCH] Rate limit hit, pausing %.0fs",
                            self.config.rate_limit_pause,
                        )
                        await self._sleep(self.config.rate_limit_pause)
                await self._sleep(self.config.query_delay)
            await self._sleep(self.config.subreddit_delay)

        logger.info("[RESEARCH] Reddit collected %d posts", len(texts))
        return texts

    async def _search(self, subreddit: str, query: str) -> List[str]:
        posts = await self.scheduler.run(
            lambda: self.client.search(
                subreddit, query, limit=self.config.posts_per_query, sort="new"
            ),
            f"r/{subreddit} {query!r}",
        )
        texts = []
        for post in posts:
            text = f"Title: {post.get('title', '')}\nContent: {post.get('selftext') or ''}\n"
            post_id = post.get("id")
            if post_id and self.config.comments_per_post > 0:
                comments = await self.scheduler.run(
                    lambda pid=post_id: self.client.get_comments(
                        pid, limit=self.config.comments_per_post
                    ),
                    f"comments {post_id}",
                )
                bodies = [c.get("body", "") for c in comments if c.get("body")]
                if bodies:
                    text += "Comments:\n" + "\n".join(f"- {body}" for body in bodies)
            texts.append(text)
        return texts


# =============================================================================
# TWITTER
# =============================================================================


class TwitterCollector(BaseCollector):
    """One combined pain-point search over recent tweets."""

    source = "twitter"
    medium = "tweets in business/startup contexts"
    label = "Tweets"
    fallback = FALLBACK_TWITTER

    def __init__(
        self,
        client: TwitterClient,
        scheduler: RequestScheduler,
        llm: Optional[ClaudeClient],
        config: ResearchConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        super().__init__(scheduler, llm, config, sleep)
        self.client = client

    @property
    def is_available(self) -> bool:
        return self.client.is_available and self.scheduler.is_available

    async def collect(self, topic: str = "") -> CollectorReport:
        if not self.is_available:
            reason = self.client.capability.reason or self.scheduler.capability.reason
            return self.failure_report(f"Twitter API not available: {reason}")

        try:
            tweets = await self.scheduler.run(
                lambda: self.client.search_recent(
                    self.config.twitter_query, max_results=self.config.twitter_max_results
                ),
                "pain point search",
            )
        except COLLECTOR_ERRORS as exc:
            return self.failure_report(f"Twitter search failed: {exc}")

        texts = [f"Tweet: {tweet['text']}\n" for tweet in tweets if tweet.get("text")]
        if not texts:
            return self.failure_report("No relevant tweets found")
        logger.info("[RESEARCH] Twitter collected %d tweets", len(texts))
        return await self._extract(texts, topic)


# =============================================================================
# AGGREGATOR
# =============================================================================


def merge_trends(reports: List[CollectorReport], limit: int) -> List[str]:
    """Trends of succeeded reports, exact duplicates removed, order kept."""
    merged: List[str] = []
    seen = set()
    for report in reports:
        if not report.success:
            continue
        for trend in report.trends:
            if trend not in seen:
                seen.add(trend)
                merged.append(trend)
    return merged[:limit]


class ResearchAggregator:
    """Combine collector output into one trend list.

    Args:
        reddit: Reddit collector.
        twitter: Twitter collector, or ``None`` when Twitter is not wired up.
        max_trends: Cap on the merged trend list.
    """

    def __init__(
        self,
        reddit: RedditCollector,
        twitter: Optional[TwitterCollector] = None,
        max_trends: int = 30,
    ) -> None:
        self.reddit = reddit
        self.twitter = twitter
        self.max_trends = max_trends

    @property
    def twitter_available(self) -> bool:
        return self.twitter is not None and self.twitter.is_available

    async def get_combined_research(self, topic: str = "") -> ResearchResult:
        """Research trends for *topic* across every available source."""
        logger.info("[RESEARCH] Researching trends for: %s", topic or "(general)")

        collectors: List[BaseCollector] = [self.reddit]
        if self.twitter_available:
            collectors.append(self.twitter)  # type: ignore[arg-type]
        else:
            logger.info("[RESEARCH] Twitter unavailable; using Reddit only")

        outcomes = await asyncio.gather(
            *(collector.collect(topic) for collector in collectors),
            return_exceptions=True,
        )

        reports: List[CollectorReport] = []
        for collector, outcome in zip(collectors, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("[RESEARCH] %s collector crashed: %s", collector.source, outcome)
                reports.append(collector.failure_report(str(outcome)))
            else:
                reports.append(outcome)

        by_source = {report.source: report for report in reports}
        sources = {
            "reddit": by_source["reddit"].success,
            "twitter": by_source["twitter"].success if "twitter" in by_source else False,
        }
        trends = merge_trends(reports, self.max_trends)
        succeeded = any(report.success for report in reports)

        error = None
        if not trends:
            trends = list(FALLBACK_TRENDS)
            error = "; ".join(r.error for r in reports if r.error) or "No trends found"

        logger.info(
            "[RESEARCH] Combined %d trends (reddit=%s, twitter=%s)",
            len(trends),
            sources["reddit"],
            sources["twitter"],
        )
        return ResearchResult(
            success=succeeded,
            trends=trends,
            sources=sources,
            error=error,
            sentiment=by_source["reddit"].sentiment,
        )


def enhance_prompt_with_research(base_prompt: str, research: ResearchResult, count: int = 5) -> str:
    """Append the leading trends to an idea-generation prompt."""
    if not research.success or not research.trends:
        return base_prompt
    cleaned = [
        '"' + trend.replace("#", "").replace('"', "").replace("'", "") + '"'
        for trend in research.trends[:count]
    ]
    return (
        f"{base_prompt}\n\n"
        f"Incorporate insights from current market trends including: {', '.join(cleaned)}.\n"
        "Consider these trending topics when developing your business idea "
        "recommendations to ensure relevance and timeliness."
    )
