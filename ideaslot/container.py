"""
Long-lived services, built once at startup and passed explicitly.

``ServiceContainer`` owns the two schedulers, the provider clients, the
state store and every agent built on top of them.  The HTTP app and the
CLI both receive a container; nothing is kept in module globals.
Schedulers hold only in-memory queues, so no teardown is needed.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ideaslot.agents.duplicate_remover import DuplicateRemover
from ideaslot.agents.idea_ingestion import IdeaIngestion
from ideaslot.agents.research import RedditCollector, ResearchAggregator, TwitterCollector
from ideaslot.agents.twitter_batch import TwitterCategoryBatch
from ideaslot.config import Settings, credential_status
from ideaslot.database import IdeaStore, SupabaseConfig
from ideaslot.exceptions import DatabaseError
from ideaslot.models import SimilarityWeights
from ideaslot.scheduling.batch_processor import BatchProcessor
from ideaslot.scheduling.request_scheduler import RequestScheduler
from ideaslot.scheduling.state_store import StateStore, create_state_store
from ideaslot.tools.claude_client import ClaudeClient, get_claude
from ideaslot.tools.reddit import RedditClient, classify_reddit_error
from ideaslot.tools.twitter import TwitterClient, classify_twitter_error

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    reddit_scheduler: RequestScheduler
    twitter_scheduler: RequestScheduler
    reddit_client: RedditClient
    twitter_client: TwitterClient
    llm: Optional[ClaudeClient]
    state_store: StateStore
    twitter_batch: TwitterCategoryBatch
    reddit_collector: RedditCollector
    twitter_collector: TwitterCollector
    aggregator: ResearchAggregator
    store: Optional[IdeaStore] = None

    @classmethod
    def build(
        cls,
        settings: Settings,
        store: Optional[IdeaStore] = None,
        llm: Optional[ClaudeClient] = None,
        reddit_client: Optional[RedditClient] = None,
        twitter_client: Optional[TwitterClient] = None,
        state_store: Optional[StateStore] = None,
        reddit_scheduler: Optional[RequestScheduler] = None,
        twitter_scheduler: Optional[RequestScheduler] = None,
    ) -> "ServiceContainer":
        """Wire every service from *settings*; any piece may be injected."""
        reddit_client = reddit_client or RedditClient()
        twitter_client = twitter_client or TwitterClient()
        reddit_scheduler = reddit_scheduler or RequestScheduler(
            settings.reddit_policy, classify_error=classify_reddit_error
        )
        twitter_scheduler = twitter_scheduler or RequestScheduler(
            settings.twitter_policy, classify_error=classify_twitter_error
        )
        # A usage-cap trip in the scheduler also disables the client
        reddit_scheduler.on_disabled(reddit_client.disable)
        twitter_scheduler.on_disabled(twitter_client.disable)

        state_store = state_store or create_state_store(settings.state_path)
        research = settings.research

        reddit_collector = RedditCollector(reddit_client, reddit_scheduler, llm, research)
        twitter_collector = TwitterCollector(twitter_client, twitter_scheduler, llm, research)
        container = cls(
            settings=settings,
            reddit_scheduler=reddit_scheduler,
            twitter_scheduler=twitter_scheduler,
            reddit_client=reddit_client,
            twitter_client=twitter_client,
            llm=llm,
            state_store=state_store,
            twitter_batch=TwitterCategoryBatch(
                twitter_client,
                BatchProcessor(twitter_scheduler, state_store),
                max_results=research.twitter_max_results,
                default_template=research.category_query_template,
            ),
            reddit_collector=reddit_collector,
            twitter_collector=twitter_collector,
            aggregator=ResearchAggregator(
                reddit_collector, twitter_collector, max_trends=research.max_trends
            ),
            store=store,
        )
        logger.info(
            "Services ready: reddit=%s twitter=%s llm=%s store=%s state=%s",
            reddit_client.is_available,
            twitter_client.is_available,
            llm is not None,
            store is not None,
            "file" if state_store.durable else "memory",
        )
        return container

    @classmethod
    async def from_settings(cls, settings: Settings) -> "ServiceContainer":
        """Build with real clients; the idea store is optional."""
        missing = [name for name, present in credential_status().items() if not present]
        if missing:
            logger.info("Credentials not set: %s", ", ".join(missing))
        store: Optional[IdeaStore] = None
        try:
            config = SupabaseConfig.from_env()
        except ValueError as exc:
            logger.warning("Idea store disabled: %s", exc)
        else:
            store = await IdeaStore.create(config)
        return cls.build(settings, store=store, llm=get_claude(model=settings.llm_model))

    # ------------------------------------------------------------------
    # Store-backed services
    # ------------------------------------------------------------------

    def require_store(self) -> IdeaStore:
        if self.store is None:
            raise DatabaseError("Idea store is not configured (set SUPABASE_URL and SUPABASE_SERVICE_KEY)")
        return self.store

    def duplicate_remover(self) -> DuplicateRemover:
        return DuplicateRemover(self.require_store())

    def idea_ingestion(self) -> IdeaIngestion:
        similarity = self.settings.similarity
        return IdeaIngestion(
            self.require_store(),
            threshold=similarity.threshold,
            weights=SimilarityWeights(
                title=similarity.title_weight,
                description=similarity.description_weight,
            ),
        )
