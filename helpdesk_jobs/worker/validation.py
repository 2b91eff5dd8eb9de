"""
Ticket completeness validation.

Produces a verdict plus feedback for a ticket and stores it latest-wins.
Uses the reasoning service when one is configured, otherwise a
deterministic heuristic over the ticket fields.
"""

import logging

from pydantic import ValidationError

from helpdesk_jobs.clients.reasoning import extract_json_object
from helpdesk_jobs.db.connection import session_scope
from helpdesk_jobs.db.models import Ticket
from helpdesk_jobs.db.results import ResultRepository, TicketRepository
from helpdesk_jobs.exceptions import TicketNotFoundError
from helpdesk_jobs.types.job import HandlerServices
from helpdesk_jobs.types.results import ValidationVerdict

logger = logging.getLogger(__name__)

PARSE_ERROR_FEEDBACK = "AI validation encountered a parsing error. Please review manually."

VALIDATION_PROMPT = """You are a ticket quality reviewer for a software development team.

Evaluate the following ticket for completeness and quality. A good ticket must have:
1. A clear, specific title (not vague like "fix bug" or "update something")
2. A detailed description that explains the problem or requirement clearly
3. Concrete acceptance criteria, testable conditions that define "done"
4. A specific affected module or feature area (not just "the app")

Ticket details:
- Title: {title}
- Description: {description}
- Acceptance Criteria: {acceptance_criteria}
- Affected Module: {affected_module}

Respond ONLY with valid JSON in this exact format:
{{
  "is_complete": true or false,
  "feedback": "One or two sentences of specific, actionable feedback. If complete, say what is well defined. If incomplete, explain exactly what is missing."
}}"""


def heuristic_verdict(ticket: Ticket) -> ValidationVerdict:
    """Judge completeness from field lengths alone."""
    title_ok = len((ticket.title or "").strip()) >= 10
    description_ok = len((ticket.description or "").strip()) >= 30
    acceptance_ok = len((ticket.acceptance_criteria or "").strip()) >= 10
    module_ok = len((ticket.affected_module or "").strip()) > 0

    is_complete = title_ok and description_ok and acceptance_ok and module_ok

    feedback: list[str] = []
    if not title_ok:
        feedback.append("Title is too short or vague.")
    if not description_ok:
        feedback.append("Description lacks detail.")
    if not acceptance_ok:
        feedback.append("Missing clear acceptance criteria.")
    if not module_ok:
        feedback.append("Affected module is not specified.")
    if is_complete:
        feedback.append("Ticket looks reasonably complete based on heuristics.")

    return ValidationVerdict(
        is_complete=is_complete,
        feedback=" ".join(feedback) or "No feedback available.",
    )


def parse_verdict(text: str) -> ValidationVerdict:
    """Read the verdict out of the model's reply; unreadable replies ask for manual review."""
    data = extract_json_object(text)
    if data is not None:
        try:
            return ValidationVerdict.model_validate(data)
        except ValidationError:
            pass

    logger.warning("Could not parse validation response", extra={"response": text[:200]})
    return ValidationVerdict(is_complete=False, feedback=PARSE_ERROR_FEEDBACK)


async def validate_ticket(ticket_id: int, services: HandlerServices) -> ValidationVerdict:
    """
    Validate a ticket and store the verdict.

    Args:
        ticket_id: The ticket to validate.
        services: Shared handler services.

    Returns:
        The stored verdict.

    Raises:
        TicketNotFoundError: If the ticket does not exist.
        ExternalServiceError: If the reasoning service call fails.
    """
    async with session_scope(services.session_factory) as session:
        ticket = await TicketRepository(session).get_ticket(ticket_id)
    if ticket is None:
        raise TicketNotFoundError(ticket_id)

    if services.reasoning is None:
        verdict = heuristic_verdict(ticket)
    else:
        prompt = VALIDATION_PROMPT.format(
            title=ticket.title,
            description=ticket.description,
            acceptance_criteria=ticket.acceptance_criteria,
            affected_module=ticket.affected_module,
        )
        text = await services.reasoning.complete(
            prompt,
            max_tokens=services.settings.anthropic_max_tokens_validation,
        )
        verdict = parse_verdict(text)

    async with session_scope(services.session_factory) as session:
        await ResultRepository(session).upsert_validation(
            ticket_id, verdict.is_complete, verdict.feedback
        )

    return verdict
