"""
External service clients used by the job handlers.
"""

from helpdesk_jobs.clients.code_host import (
    BitbucketClient,
    CodeHostClient,
    GitHubClient,
    check_code_host_config,
    create_code_host,
    filter_files_by_keyword,
)
from helpdesk_jobs.clients.reasoning import ReasoningClient, create_reasoning_client

__all__ = [
    "CodeHostClient",
    "BitbucketClient",
    "GitHubClient",
    "check_code_host_config",
    "create_code_host",
    "filter_files_by_keyword",
    "ReasoningClient",
    "create_reasoning_client",
]
