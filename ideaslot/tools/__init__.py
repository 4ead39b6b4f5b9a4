"""
External service clients.

- ClaudeClient: Anthropic Claude API for trend extraction and sentiment
- RedditClient: Reddit OAuth API for subreddit search and comments
- TwitterClient: X/Twitter API v2 recent search
"""

from ideaslot.tools.claude_client import ClaudeClient, get_claude, strip_code_fences
from ideaslot.tools.reddit import RedditClient, classify_reddit_error
from ideaslot.tools.twitter import TwitterClient, classify_twitter_error

__all__ = [
    "ClaudeClient",
    "get_claude",
    "strip_code_fences",
    "RedditClient",
    "classify_reddit_error",
    "TwitterClient",
    "classify_twitter_error",
]
