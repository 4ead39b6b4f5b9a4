"""
Centralized configuration loader for the ideaslot backend.

Loads settings from an optional YAML file and environment variables,
providing sensible defaults when configuration files are absent.

Provides:
    - RateLimitPolicy: Window/cap/pacing/backoff parameters for one scheduler
    - ResearchConfig: Subreddit set, query set and pacing for the collectors
    - SimilarityConfig: Default dedup threshold and field weights
    - Settings: Global application settings loaded from YAML + env vars
    - get_settings(): Cached accessor for Settings
    - credential_status(): Presence flags for every recognized credential
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import yaml
from dotenv import load_dotenv

from ideaslot.exceptions import ConfigurationError

# ---------------------------------------------------------------------------
# Load .env file (no-op if file does not exist)
# ---------------------------------------------------------------------------
load_dotenv()

# ---------------------------------------------------------------------------
# Project root directory (parent of ideaslot/)
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent

DEFAULT_STATE_FILE = "data/twitter-rate-limit-state.json"

logger = logging.getLogger(__name__)


def _apply_env_overrides(
    target: Any, overrides: Dict[str, Tuple[str, Callable[[str], Any]]]
) -> None:
    """Set attributes on *target* from environment variables.

    Raises:
        ConfigurationError: If a variable is set but cannot be cast.
    """
    for env_key, (attr_name, cast_fn) in overrides.items():
        env_val = os.environ.get(env_key)
        if env_val is None:
            continue
        try:
            setattr(target, attr_name, cast_fn(env_val))
        except (ValueError, TypeError) as exc:
            raise ConfigurationError(
                f"Invalid value for env var {env_key}='{env_val}': {exc}"
            ) from exc


# ===========================================================================
# RATE LIMIT POLICY
# ===========================================================================


@dataclass
class RateLimitPolicy:
    """
    Budget and pacing for one outbound API.

    Attributes:
        name: Provider name used in logs and error messages.
        window_seconds: Length of the sliding window.
        max_requests: Admissions allowed inside one window.
        min_interval: Minimum gap between two consecutive dispatches.
        max_retries: Retries granted to a rate-limited request.
        backoff_base: Base of the exponential backoff (``base * 2 ** attempt``).
        safety_buffer: Extra seconds added to every computed window wait.
        defer_backoff: When ``True`` the backoff runs off the processing loop
            and the loop keeps dispatching siblings in the meantime.
    """

    name: str
    window_seconds: float
    max_requests: int
    min_interval: float
    max_retries: int = 3
    backoff_base: float = 5.0
    safety_buffer: float = 1.0
    defer_backoff: bool = False

    def __post_init__(self) -> None:
        if self.window_seconds <= 0:
            raise ConfigurationError(
                f"{self.name}: window_seconds must be positive, got {self.window_seconds}"
            )
        if self.max_requests < 1:
            raise ConfigurationError(
                f"{self.name}: max_requests must be >= 1, got {self.max_requests}"
            )
        if self.min_interval < 0 or self.backoff_base < 0 or self.safety_buffer < 0:
            raise ConfigurationError(f"{self.name}: delays cannot be negative")
        if self.max_retries < 0:
            raise ConfigurationError(f"{self.name}: max_retries cannot be negative")

    @classmethod
    def reddit(cls) -> "RateLimitPolicy":
        """50 requests per minute, 1.2s spacing (provider cap is 60/min)."""
        return cls(name="reddit", window_seconds=60.0, max_requests=50, min_interval=1.2)

    @classmethod
    def twitter(cls) -> "RateLimitPolicy":
        """300 requests per 15 minutes, 3s spacing."""
        return cls(name="twitter", window_seconds=900.0, max_requests=300, min_interval=3.0)


# ===========================================================================
# RESEARCH CONFIGURATION
# ===========================================================================

DEFAULT_SUBREDDITS: List[str] = [
    # Business and productivity
    "startups",
    "entrepreneurship",
    "smallbusiness",
    "productivity",
    "sidehustle",
    "freelance",
    "marketing",
    # Tech and development
    "learnprogramming",
    "webdev",
    "SaaS",
    "indiehackers",
    # Niche communities
    "personalfinance",
    "fitness",
    "writing",
    "photography",
    "gaming",
    # General problem solving
    "AskReddit",
    "LifeProTips",
    "ideas",
    "needadvice",
]

DEFAULT_SEARCH_QUERIES: List[str] = [
    "having trouble with",
    "issue with",
    "problem solving for",
    "fix for",
    "workaround for",
    "hate when",
    "annoying thing about",
    "biggest challenge in",
    "any good apps for",
    "recommend software for",
    "looking for alternatives to",
    "better way to",
    "tired of",
    "why is it so hard to",
    "wish there was a",
    "idea for a tool that",
    "I need a tool for",
    "looking for a tool",
    "struggling with",
    "alternative to",
]

DEFAULT_TWITTER_QUERY = (
    '("I need a tool for" OR "looking for a tool" OR "need a tool to" '
    'OR "what tool should I use for" OR "pain point with" OR "struggling with" '
    'OR "recommend a tool for" OR "can\'t find a tool" OR "frustrated with my current" '
    'OR "alternative to") (business OR startup OR SaaS) lang:en -is:retweet'
)

DEFAULT_CATEGORY_TEMPLATE = '"{category}" lang:en -is:retweet'


@dataclass
class ResearchConfig:
    """
    Collector fan-out and pacing.

    The per-query and per-subreddit delays sit on top of the scheduler's
    own pacing.
    """

    subreddits: List[str] = field(default_factory=lambda: list(DEFAULT_SUBREDDITS))
    queries: List[str] = field(default_factory=lambda: list(DEFAULT_SEARCH_QUERIES))
    query_limit: int = 5
    posts_per_query: int = 1
    comments_per_post: int = 2
    query_delay: float = 2.0
    subreddit_delay: float = 3.0
    rate_limit_pause: float = 60.0
    max_trends: int = 30
    twitter_query: str = DEFAULT_TWITTER_QUERY
    twitter_max_results: int = 20
    category_query_template: str = DEFAULT_CATEGORY_TEMPLATE
    accept_sentences: bool = True

    @property
    def active_queries(self) -> List[str]:
        return self.queries[: self.query_limit]


# ===========================================================================
# SIMILARITY CONFIGURATION
# ===========================================================================


@dataclass
class SimilarityConfig:
    """Default dedup threshold and field weights."""

    threshold: float = 0.7
    title_weight: float = 0.6
    description_weight: float = 0.4

    def __post_init__(self) -> None:
        if not 0.0 <= self.threshold <= 1.0:
            raise ConfigurationError(
                f"similarity.threshold must be within [0, 1], got {self.threshold}"
            )


# ===========================================================================
# SETTINGS
# ===========================================================================


@dataclass
class Settings:
    """
    Global application settings.

    Loaded from ``config.yaml`` (or the path in ``IDEASLOT_CONFIG``) when
    available, falling back to defaults.  Environment variables override
    YAML values for secrets and deployment-specific configuration.
    """

    environment: str = "production"
    cron_auth_token: Optional[str] = None

    # LLM
    llm_model: str = "claude-opus-4-5-20251101"

    # Persisted batch state
    state_file: str = DEFAULT_STATE_FILE

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 8000

    reddit_policy: RateLimitPolicy = field(default_factory=RateLimitPolicy.reddit)
    twitter_policy: RateLimitPolicy = field(default_factory=RateLimitPolicy.twitter)
    research: ResearchConfig = field(default_factory=ResearchConfig)
    similarity: SimilarityConfig = field(default_factory=SimilarityConfig)

    @property
    def is_development(self) -> bool:
        """Development mode relaxes the maintenance-endpoint auth check."""
        return self.environment.lower() == "development"

    @property
    def state_path(self) -> Path:
        path = Path(self.state_file)
        return path if path.is_absolute() else PROJECT_ROOT / path

    @classmethod
    def from_yaml(cls, path: Optional[Path] = None) -> "Settings":
        """
        Load settings from a YAML file, then apply environment overrides.

        If the file does not exist, returns an instance with all defaults
        (still subject to environment overrides).

        Args:
            path: Path to the YAML file.  Defaults to ``IDEASLOT_CONFIG``
                or ``<PROJECT_ROOT>/config.yaml``.

        Raises:
            ConfigurationError: If the YAML file exists but cannot be parsed,
                or an override has an invalid value.
        """
        if path is None:
            env_path = os.environ.get("IDEASLOT_CONFIG")
            path = Path(env_path) if env_path else PROJECT_ROOT / "config.yaml"

        data: Dict[str, Any] = {}
        if path.exists():
            try:
                with open(path, "r", encoding="utf-8") as fh:
                    data = yaml.safe_load(fh) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(
                    f"Failed to parse settings YAML at {path}: {exc}"
                ) from exc

        # -----------------------------------------------------------------
        # Rate limit policies (YAML, then env)
        # -----------------------------------------------------------------
        rate_data = data.get("rate_limits", {})
        reddit_policy = _merge_policy(RateLimitPolicy.reddit(), rate_data.get("reddit", {}))
        twitter_policy = _merge_policy(RateLimitPolicy.twitter(), rate_data.get("twitter", {}))
        _apply_env_overrides(reddit_policy, {
            "REDDIT_MAX_REQUESTS": ("max_requests", int),
            "REDDIT_MIN_INTERVAL": ("min_interval", float),
        })
        _apply_env_overrides(twitter_policy, {
            "TWITTER_MAX_REQUESTS": ("max_requests", int),
            "TWITTER_MIN_INTERVAL": ("min_interval", float),
        })
        # Re-run validation after overrides
        reddit_policy.__post_init__()
        twitter_policy.__post_init__()

        research_data = data.get("research", {})
        research = ResearchConfig(**{
            k: v for k, v in research_data.items()
            if k in ResearchConfig.__dataclass_fields__
        })

        similarity_data = data.get("similarity", {})
        similarity = SimilarityConfig(**{
            k: v for k, v in similarity_data.items()
            if k in SimilarityConfig.__dataclass_fields__
        })

        settings = cls(
            environment=data.get("environment", "production"),
            cron_auth_token=data.get("cron_auth_token"),
            llm_model=data.get("llm_model", "claude-opus-4-5-20251101"),
            state_file=data.get("state_file", DEFAULT_STATE_FILE),
            host=data.get("host", "0.0.0.0"),
            port=data.get("port", 8000),
            reddit_policy=reddit_policy,
            twitter_policy=twitter_policy,
            research=research,
            similarity=similarity,
        )
        _apply_env_overrides(settings, {
            "ENVIRONMENT": ("environment", str),
            "CRON_AUTH_TOKEN": ("cron_auth_token", str),
            "CLAUDE_MODEL": ("llm_model", str),
            "IDEASLOT_STATE_FILE": ("state_file", str),
            "PORT": ("port", int),
        })
        return settings


def _merge_policy(policy: RateLimitPolicy, overrides: Dict[str, Any]) -> RateLimitPolicy:
    for key, value in overrides.items():
        if key not in RateLimitPolicy.__dataclass_fields__ or key == "name":
            logger.warning("Ignoring unknown rate limit setting '%s' for %s", key, policy.name)
            continue
        setattr(policy, key, value)
    return policy


# ===========================================================================
# CACHED SETTINGS ACCESSOR
# ===========================================================================

_settings_instance: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the cached Settings instance.

    On first call, loads from YAML (or defaults) plus environment.
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings.from_yaml()
    return _settings_instance


def reset_settings() -> None:
    """Drop the cached Settings so the next access reloads them."""
    global _settings_instance
    _settings_instance = None


# ===========================================================================
# CREDENTIALS
# ===========================================================================

REDDIT_ENV_VARS: List[str] = [
    "REDDIT_CLIENT_ID",
    "REDDIT_CLIENT_SECRET",
    "REDDIT_USER_AGENT",
    "REDDIT_USERNAME",
    "REDDIT_PASSWORD",
]

OPTIONAL_ENV_VARS: List[str] = [
    "SUPABASE_URL",
    "SUPABASE_SERVICE_KEY",
    "ANTHROPIC_API_KEY",
    "TWITTER_BEARER_TOKEN",
    "CRON_AUTH_TOKEN",
    *REDDIT_ENV_VARS,
]


def credential_status() -> Dict[str, bool]:
    """
    Report which recognized credentials are present.

    Collectors with missing credentials start disabled rather than
    failing, so nothing here is strictly required.

    Returns:
        Dict mapping variable name to presence status.
    """
    return {var: bool(os.environ.get(var)) for var in OPTIONAL_ENV_VARS}


__all__ = [
    "RateLimitPolicy",
    "ResearchConfig",
    "SimilarityConfig",
    "Settings",
    "get_settings",
    "reset_settings",
    "credential_status",
    "REDDIT_ENV_VARS",
    "OPTIONAL_ENV_VARS",
    "DEFAULT_SUBREDDITS",
    "DEFAULT_SEARCH_QUERIES",
    "DEFAULT_TWITTER_QUERY",
    "DEFAULT_CATEGORY_TEMPLATE",
    "DEFAULT_STATE_FILE",
    "PROJECT_ROOT",
]
