"""GitHub change-set publishing."""

from ragprep.adapters.github.client import GitHubClient
from ragprep.adapters.github.pr_description import build_pr_description, build_pr_title
from ragprep.adapters.github.publisher import GitHubPullRequestPublisher

__all__ = [
    "GitHubClient",
    "GitHubPullRequestPublisher",
    "build_pr_description",
    "build_pr_title",
]
