"""Tests for the HTTP surface.

Validates:
- Maintenance auth (bearer token outside development mode)
- Duplicate removal validation happens before any store call
- Twitter batch request validation and the unavailable response
- Research test trigger platforms and the health endpoint
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from ideaslot.api import create_app
from ideaslot.config import RateLimitPolicy, ResearchConfig, Settings
from ideaslot.container import ServiceContainer
from ideaslot.exceptions import DatabaseError
from ideaslot.scheduling.request_scheduler import RequestScheduler
from ideaslot.scheduling.state_store import InMemoryStateStore
from ideaslot.tools.reddit import RedditClient
from ideaslot.tools.twitter import TwitterClient, classify_twitter_error

AUTH = {"Authorization": "Bearer cron-secret"}


def build_container(store=None, environment="production", twitter_client=None):
    settings = Settings(
        environment=environment,
        cron_auth_token="cron-secret",
        research=ResearchConfig(subreddits=["startups"], query_limit=1),
    )
    twitter_policy = RateLimitPolicy(
        name="twitter", window_seconds=900.0, max_requests=300, min_interval=0.0
    )
    return ServiceContainer.build(
        settings,
        store=store,
        reddit_client=RedditClient(),
        twitter_client=twitter_client or TwitterClient(),
        state_store=InMemoryStateStore(),
        twitter_scheduler=RequestScheduler(twitter_policy, classify_error=classify_twitter_error),
    )


@pytest.fixture
def client(mock_store):
    with TestClient(create_app(build_container(store=mock_store))) as test_client:
        yield test_client


# =============================================================================
# /duplicates/remove
# =============================================================================


class TestRemoveDuplicatesEndpoint:
    """Tests for POST /duplicates/remove."""

    def test_requires_bearer_token(self, client, mock_store):
        response = client.post("/duplicates/remove", json={})

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Unauthorized"}
        assert mock_store.method_calls == []

    def test_wrong_token_rejected(self, client):
        response = client.post("/duplicates/remove", json={}, headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_development_mode_skips_auth(self, mock_store):
        client = TestClient(create_app(build_container(store=mock_store, environment="development")))
        response = client.post("/duplicates/remove", json={})
        assert response.status_code == 200

    def test_threshold_out_of_range_makes_no_store_calls(self, client, mock_store):
        response = client.post("/duplicates/remove", json={"threshold": 1.5}, headers=AUTH)

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert "threshold" in body["error"]
        assert mock_store.method_calls == []

    def test_unknown_strategy_rejected(self, client, mock_store):
        response = client.post("/duplicates/remove", json={"removeStrategy": "keep-all"}, headers=AUTH)

        assert response.status_code == 400
        assert "keep-newer" in response.json()["error"]
        assert mock_store.method_calls == []

    def test_keep_newer_removes_older(self, client, mock_store, make_idea):
        mock_store.fetch_ideas.return_value = [
            make_idea("idea-1", "AI Recipe App", "Generates recipes from pantry items", age_days=2),
            make_idea("idea-2", "AI recipe app", "Generates recipes from pantry items!", age_days=1),
        ]

        response = client.post("/duplicates/remove", json={"threshold": 0.7}, headers=AUTH)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["removedIds"] == ["idea-1"]
        assert body["removedCount"] == 1
        assert body["removeStrategy"] == "keep-newer"
        assert body["threshold"] == 0.7

    def test_keep_both_removes_nothing(self, client, mock_store, make_idea):
        mock_store.fetch_ideas.return_value = [
            make_idea("idea-1", "AI Recipe App", age_days=2),
            make_idea("idea-2", "AI Recipe App", age_days=1),
        ]

        body = client.post(
            "/duplicates/remove", json={"removeStrategy": "keep-both"}, headers=AUTH
        ).json()

        assert body["removedCount"] == 0
        assert body["removedIds"] == []
        mock_store.delete_ideas.assert_not_awaited()

    def test_specific_pair_accepts_alias_ids(self, client, mock_store, make_idea):
        mock_store.get_ideas_by_ids.return_value = [
            make_idea("idea-1", "AI Recipe App", age_days=2),
            make_idea("idea-2", "Dog walking", age_days=1),
        ]

        response = client.post(
            "/duplicates/remove",
            json={"specificPair": {"idea1Id": "idea-1", "idea2Id": "idea-2"}},
            headers=AUTH,
        )

        assert response.status_code == 200
        assert response.json()["specificPair"] == {"id1": "idea-1", "id2": "idea-2"}
        assert response.json()["removedIds"] == ["idea-1"]

    def test_specific_pair_missing_id(self, client):
        response = client.post(
            "/duplicates/remove", json={"specificPair": {"id1": "idea-1"}}, headers=AUTH
        )
        assert response.status_code == 400

    def test_specific_pair_unknown_id(self, client, mock_store):
        response = client.post(
            "/duplicates/remove",
            json={"specificPair": {"id1": "idea-1", "id2": "idea-9"}},
            headers=AUTH,
        )
        assert response.status_code == 400
        assert "not found" in response.json()["error"]

    def test_store_failure_is_500(self, client, mock_store):
        mock_store.fetch_ideas.side_effect = DatabaseError("Fetch ideas failed: timeout")

        response = client.post("/duplicates/remove", json={}, headers=AUTH)

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Fetch ideas failed: timeout"}

    def test_missing_store_is_500(self):
        client = TestClient(create_app(build_container(store=None)))
        response = client.post("/duplicates/remove", json={}, headers=AUTH)
        assert response.status_code == 500

    def test_usage_document(self, client):
        body = client.get("/duplicates/remove").json()
        assert body["usage"]["method"] == "POST"
        assert "keep-neither" in body["strategies"]


# =============================================================================
# /research
# =============================================================================


class TestTwitterBatchEndpoint:
    """Tests for /research/twitter-batch."""

    @pytest.mark.parametrize("payload", [{}, {"categories": []}, {"categories": "tech"}])
    def test_bad_categories_are_400(self, client, payload):
        response = client.post("/research/twitter-batch", json=payload)
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_template_without_placeholder_is_400(self, client):
        response = client.post(
            "/research/twitter-batch",
            json={"categories": ["tech"], "searchQueryTemplate": "no placeholder"},
        )
        assert response.status_code == 400

    def test_unavailable_twitter_is_200_with_failure(self, client):
        response = client.post("/research/twitter-batch", json={"categories": ["tech", "health"]})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["results"] == {}

    def test_runs_batch(self, mock_store):
        def handler(request):
            return httpx.Response(200, json={"data": [{"id": "1", "text": "tweet"}]})

        twitter = TwitterClient(bearer_token="bearer", transport=httpx.MockTransport(handler))
        app = create_app(build_container(store=mock_store, twitter_client=twitter))

        with TestClient(app) as client:
            body = client.post("/research/twitter-batch", json={"categories": ["tech", "health"]}).json()
            status = client.get("/research/twitter-batch").json()

        assert body["success"] is True
        assert set(body["results"]) == {"tech", "health"}
        assert body["state"]["completedCategories"] == ["tech", "health"]

        assert status["state"]["completedCategories"] == ["tech", "health"]
        assert status["usage"]["method"] == "POST"


class TestResearchTestEndpoint:
    def test_invalid_platform(self, client):
        response = client.get("/research/test", params={"platform": "myspace"})
        assert response.status_code == 400
        assert "platform" in response.json()["error"]

    def test_twitter_short_circuits(self, client):
        body = client.get("/research/test", params={"platform": "twitter"}).json()
        assert body["success"] is False
        assert body["platform"] == "twitter"
        assert body["trends"]

    def test_reddit_unconfigured_returns_fallback(self, client):
        body = client.get("/research/test", params={"platform": "reddit"}).json()
        assert body["success"] is False
        assert body["source"] == "reddit"
        assert len(body["trends"]) > 0

    def test_combined(self, client):
        body = client.get("/research/test", params={"platform": "combined"}).json()
        assert body["sources"] == {"reddit": False, "twitter": False}
        assert len(body["trends"]) > 0


# =============================================================================
# /ideas/ingest and /healthz
# =============================================================================


class TestIngestEndpoint:
    def test_ingest(self, client, mock_store):
        response = client.post(
            "/ideas/ingest",
            json={"ideas": [{"title": "Payroll bot", "painScore": 7}], "prompt": "payroll"},
            headers=AUTH,
        )

        assert response.status_code == 200
        assert response.json()["count"] == 1
        rows = mock_store.insert_ideas.await_args.args[0]
        assert rows[0]["pain_score"] == 7
        assert rows[0]["prompt"] == "payroll"

    def test_empty_ideas_is_400(self, client, mock_store):
        response = client.post("/ideas/ingest", json={"ideas": []}, headers=AUTH)
        assert response.status_code == 400
        assert mock_store.method_calls == []

    def test_requires_auth(self, client):
        assert client.post("/ideas/ingest", json={"ideas": [{"title": "x"}]}).status_code == 401


class TestHealth:
    def test_healthz(self, client):
        body = client.get("/healthz").json()
        assert body["status"] == "ok"
        assert body["sources"] == {"reddit": False, "twitter": False, "llm": False, "store": True}
        assert body["stateStore"] == "memory"
