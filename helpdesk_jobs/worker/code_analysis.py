"""
Code location analysis for a ticket.

Derives keywords from the ticket, picks candidate files from the repository
listing, sends bounded excerpts to the reasoning service and stores the
code spans it points at.
"""

import logging
import re
from dataclasses import dataclass

from pydantic import ValidationError

from helpdesk_jobs.clients.code_host import (
    CodeHostClient,
    check_code_host_config,
    filter_files_by_keyword,
)
from helpdesk_jobs.clients.reasoning import SERVICE_NAME, extract_json_array
from helpdesk_jobs.constants import KEYWORD_STOP_WORDS, MAX_KEYWORDS, MIN_KEYWORD_LENGTH
from helpdesk_jobs.db.connection import session_scope
from helpdesk_jobs.db.models import Ticket
from helpdesk_jobs.db.results import ResultRepository, TicketRepository
from helpdesk_jobs.exceptions import ExternalServiceError, TicketNotFoundError
from helpdesk_jobs.types.job import HandlerServices
from helpdesk_jobs.types.results import CodeLocation

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")

ANALYSIS_PROMPT = """You are a code analysis assistant. Given a software change ticket and several source files, identify the most relevant code locations where changes should be made.

Ticket:
- Title: {title}
- Description: {description}
- Acceptance Criteria: {acceptance_criteria}
- Affected Module: {affected_module}

Source files (may be truncated):
{file_blocks}

For each relevant code location, provide:
- The exact file path (as shown above)
- The starting line number (estimate from the content shown)
- The ending line number
- A clear explanation of why this location is relevant and what change might be needed

Respond ONLY with a valid JSON array (no surrounding text):
[
  {{
    "file_path": "path/to/file.ext",
    "start_line": 42,
    "end_line": 58,
    "explanation": "This function handles X which needs to be updated to support Y as described in the ticket."
  }}
]

If no relevant locations are found, return an empty array: []"""


@dataclass
class FileSnippet:
    path: str
    content: str


def extract_keywords(affected_module: str | None, description: str | None) -> list[str]:
    """
    Pick search keywords from the ticket text.

    Lowercases, turns punctuation into spaces, keeps words of at least four
    characters that are not stop words, de-duplicates in order of first
    appearance and returns at most six.
    """
    text = _NON_ALNUM.sub(" ", f"{affected_module or ''} {description or ''}".lower())

    keywords: list[str] = []
    for word in text.split():
        if len(word) < MIN_KEYWORD_LENGTH or word in KEYWORD_STOP_WORDS:
            continue
        if word not in keywords:
            keywords.append(word)
        if len(keywords) >= MAX_KEYWORDS:
            break
    return keywords


def select_candidate_files(files: list[str], keywords: list[str], max_files: int) -> list[str]:
    """Collect matching paths keyword by keyword, without repeats, up to max_files."""
    candidates: list[str] = []
    for keyword in keywords:
        for path in filter_files_by_keyword(files, keyword):
            if len(candidates) >= max_files:
                return candidates
            if path not in candidates:
                candidates.append(path)
    return candidates


async def fetch_snippets(
    code_host: CodeHostClient,
    paths: list[str],
    max_chars: int,
) -> list[FileSnippet]:
    """Fetch and truncate file contents; unreadable files are skipped."""
    snippets: list[FileSnippet] = []
    for path in paths:
        try:
            content = await code_host.get_file_content(path)
        except (ExternalServiceError, UnicodeDecodeError) as e:
            logger.debug("Skipping unreadable file", extra={"path": path, "error": str(e)})
            continue
        snippets.append(FileSnippet(path=path, content=content[:max_chars]))
    return snippets


def parse_locations_response(text: str) -> list[CodeLocation]:
    """
    Read the location array out of the model's reply.

    An unreadable reply means no locations. Entries that are not valid
    locations are dropped one by one; the rest are kept.
    """
    data = extract_json_array(text)
    if data is None:
        logger.warning("Code analysis response has no JSON array", extra={"response": text[:200]})
        return []

    locations: list[CodeLocation] = []
    for entry in data:
        try:
            locations.append(CodeLocation.model_validate(entry))
        except ValidationError as e:
            logger.warning("Dropping invalid code location", extra={"error": str(e)})
    return locations


def link_locations(code_host: CodeHostClient, locations: list[CodeLocation]) -> list[CodeLocation]:
    """Attach a repository deep link to each location."""
    return [
        location.model_copy(
            update={
                "deep_link": code_host.build_deep_link(
                    location.file_path, location.start_line, location.end_line
                )
            }
        )
        for location in locations
    ]


def build_prompt(ticket: Ticket, snippets: list[FileSnippet]) -> str:
    file_blocks = "\n\n".join(
        f"=== File {i}: {snippet.path} ===\n{snippet.content}"
        for i, snippet in enumerate(snippets, start=1)
    )
    return ANALYSIS_PROMPT.format(
        title=ticket.title,
        description=ticket.description,
        acceptance_criteria=ticket.acceptance_criteria,
        affected_module=ticket.affected_module,
        file_blocks=file_blocks,
    )


async def _store(services: HandlerServices, ticket_id: int, locations: list[CodeLocation]) -> None:
    async with session_scope(services.session_factory) as session:
        await ResultRepository(session).upsert_code_analysis(ticket_id, locations)


async def analyze_code(ticket_id: int, services: HandlerServices) -> list[CodeLocation]:
    """
    Find the code locations relevant to a ticket and store them.

    Args:
        ticket_id: The ticket to analyze.
        services: Shared handler services.

    Returns:
        The stored locations. Empty when no candidate file was found.

    Raises:
        TicketNotFoundError: If the ticket does not exist.
        CodeHostConfigError: If the selected code host is missing settings.
        ExternalServiceError: If no client is available, or listing files
            or the reasoning call fails.
    """
    async with session_scope(services.session_factory) as session:
        ticket = await TicketRepository(session).get_ticket(ticket_id)
    if ticket is None:
        raise TicketNotFoundError(ticket_id)

    code_host = services.code_host
    if code_host is None:
        check_code_host_config(services.settings)
        raise ExternalServiceError("code host", "client not configured")

    settings = services.settings
    files = await code_host.list_files(settings.analysis_max_repo_files)
    keywords = extract_keywords(ticket.affected_module, ticket.description)
    candidates = select_candidate_files(files, keywords, settings.analysis_max_files)

    logger.info(
        "Selected candidate files",
        extra={
            "ticket_id": ticket_id,
            "keywords": keywords,
            "repo_file_count": len(files),
            "candidate_count": len(candidates),
        }
    )

    if not candidates:
        await _store(services, ticket_id, [])
        return []

    snippets = await fetch_snippets(code_host, candidates, settings.analysis_max_file_chars)
    if not snippets:
        await _store(services, ticket_id, [])
        return []

    if services.reasoning is None:
        raise ExternalServiceError(SERVICE_NAME, "not configured (ANTHROPIC_API_KEY is unset)")

    text = await services.reasoning.complete(
        build_prompt(ticket, snippets),
        max_tokens=settings.anthropic_max_tokens_analysis,
    )
    locations = link_locations(code_host, parse_locations_response(text))

    await _store(services, ticket_id, locations)
    return locations
