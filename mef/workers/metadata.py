"""Heartbeat metadata shapes, one per job name.

Rows store plain JSON; ``parse_metadata`` decodes it into the model that
belongs to the row's job so shape drift shows up at read time.
"""

from datetime import datetime

import structlog
from pydantic import BaseModel, ConfigDict, ValidationError

logger = structlog.get_logger(__name__)

OCV_VOTE_COUNTING = "ocv-vote-counter"
STALE_JOB_CLEANUP = "ocv-worker-cleanup"
GPT_SURVEY_PROCESSING = "gpt-survey-processor"
DISCORD_NOTIFY = "discord-notify-proposal-submission"

OCV_VOTE_COUNTING_LOCK = "ocv_vote_counting_job"
GPT_SURVEY_PROCESSING_LOCK = "gpt_survey_processing_job"


class ProposalVoteInfo(BaseModel):
    ocv_eligible: bool
    reviewer_votes_given: int
    reviewer_votes_required: int


class OCVWorkerMetadata(BaseModel):
    moved_from_consideration_to_deliberation: dict[str, ProposalVoteInfo] = {}
    moved_from_deliberation_to_consideration: dict[str, ProposalVoteInfo] = {}
    project_vote_status: dict[str, ProposalVoteInfo] = {}
    error: str | None = None


class UpdatedJob(BaseModel):
    id: str
    name: str


class CleanupWorkerMetadata(BaseModel):
    updated_jobs: list[UpdatedJob] = []
    error: str | None = None


class ProcessedProposal(BaseModel):
    id: int
    has_summary: bool


class GptSurveyWorkerMetadata(BaseModel):
    round_id: str | None = None
    force_summary: bool = False
    started_at: datetime | None = None
    processed_proposals: list[ProcessedProposal] | None = None
    error: str | None = None
    killed_at: datetime | None = None


class DiscordNotifyMetadata(BaseModel):
    proposal_id: int | None = None
    funding_round_id: str | None = None
    error: str | None = None


class GenericWorkerMetadata(BaseModel):
    """Fallback for unknown job names or rows whose payload no longer fits."""

    model_config = ConfigDict(extra="allow")

    error: str | None = None


WorkerMetadata = (
    OCVWorkerMetadata
    | CleanupWorkerMetadata
    | GptSurveyWorkerMetadata
    | DiscordNotifyMetadata
    | GenericWorkerMetadata
)

METADATA_MODELS: dict[str, type[BaseModel]] = {
    OCV_VOTE_COUNTING: OCVWorkerMetadata,
    STALE_JOB_CLEANUP: CleanupWorkerMetadata,
    GPT_SURVEY_PROCESSING: GptSurveyWorkerMetadata,
    DISCORD_NOTIFY: DiscordNotifyMetadata,
}


def parse_metadata(job_name: str, raw: dict | None) -> WorkerMetadata | None:
    """Decode a heartbeat row's metadata into its job-specific model.

    Args:
        job_name: WorkerHeartbeat.name
        raw: JSON payload stored on the row (may be None)

    Returns:
        The typed model, GenericWorkerMetadata when the name is unknown or
        the payload does not validate, or None for an empty payload
    """
    if raw is None:
        return None

    model = METADATA_MODELS.get(job_name)
    if model is None:
        return GenericWorkerMetadata.model_validate(raw)

    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        logger.warning(
            "heartbeat_metadata_invalid",
            job=job_name,
            error_count=exc.error_count(),
        )
        return GenericWorkerMetadata.model_validate(raw)


def dump_metadata(metadata: BaseModel | dict | None) -> dict | None:
    """Serialize metadata to JSON-safe primitives for storage."""
    if metadata is None:
        return None
    if isinstance(metadata, BaseModel):
        return metadata.model_dump(mode="json", exclude_none=True)
    return metadata
