"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class JobStatus(StrEnum):
    """
    Job lifecycle states.

    State transitions:
    - PENDING -> PROCESSING (claimed by a dispatch loop)
    - PROCESSING -> DONE (handler returned)
    - PROCESSING -> FAILED (handler raised, timed out, or no handler exists)

    DONE and FAILED are terminal. Nothing moves a job back to PENDING.
    """

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    DONE = "DONE"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: frozenset[JobStatus] = frozenset({JobStatus.DONE, JobStatus.FAILED})


class JobType(StrEnum):
    """Job type tags. Each tag selects one registered handler."""

    VALIDATE_TICKET = "VALIDATE_TICKET"
    ANALYZE_CODE = "ANALYZE_CODE"


# Dispatch defaults
DEFAULT_POLL_INTERVAL_SECONDS = 5.0

# Code analysis bounds
MAX_FILE_CHARS = 4000
MAX_FILES_TO_ANALYZE = 8
MAX_REPO_FILES = 500
MAX_KEYWORDS = 6
MIN_KEYWORD_LENGTH = 4

KEYWORD_STOP_WORDS: frozenset[str] = frozenset(
    {
        "this", "that", "with", "from", "have", "been", "will", "when", "where",
        "should", "would", "could", "which", "there", "their", "what", "more",
    }
)

# API constants
API_V1_PREFIX = "/v1"

# Metrics names
METRIC_QUEUE_DEPTH = "job_queue_depth"
METRIC_JOBS_ENQUEUED = "jobs_enqueued_total"
METRIC_JOBS_CLAIMED = "jobs_claimed_total"
METRIC_JOBS_COMPLETED = "jobs_completed_total"
METRIC_JOB_DURATION = "job_duration_seconds"
METRIC_DISPATCH_ERRORS = "dispatch_errors_total"

# Trace span names
SPAN_ENQUEUE_JOB = "enqueue_job"
SPAN_CLAIM_JOB = "claim_job"
SPAN_EXECUTE_JOB = "execute_job"
SPAN_MARK_TERMINAL = "mark_terminal"
