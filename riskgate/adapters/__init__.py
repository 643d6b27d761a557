"""Adapters for external systems integration."""

from .github_client import GitHubAPIError, GitHubClient, GitHubNotFoundError
from .llm_client import AnthropicLLMClient, LLMClient, parse_structured_output
from .local_repository import LocalRepository
from .notifier import Notifier, NullNotifier, SlackNotifier, resolve_notifier, safe_notify

__all__ = [
    "AnthropicLLMClient",
    "GitHubAPIError",
    "GitHubClient",
    "GitHubNotFoundError",
    "LLMClient",
    "LocalRepository",
    "Notifier",
    "NullNotifier",
    "SlackNotifier",
    "parse_structured_output",
    "resolve_notifier",
    "safe_notify",
]
