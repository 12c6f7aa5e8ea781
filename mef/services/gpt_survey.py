"""GPT Survey processing: sync a round's proposals and community feedback to the summarizer.

GptSurveyService holds the audit-table queries; GptSurveyRunner walks a
funding round and talks to the API through GptSurveyClient.
"""

import json
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mef.core.exceptions import AppError, JobCancelledError
from mef.db.models.funding_round import FundingRound
from mef.db.models.gpt_survey import GptSurveyFeedbackSubmission, GptSurveyProposalSubmission
from mef.db.models.proposal import Proposal
from mef.db.models.user import User
from mef.db.models.vote import DeliberationVote
from mef.domain.proposal_status import ProposalStatus
from mef.integrations.gpt_survey import GptSurveyClient

logger = structlog.get_logger(__name__)

# Proposals that have reached deliberation at some point
SURVEY_PROPOSAL_STATUSES = (
    ProposalStatus.DELIBERATION.value,
    ProposalStatus.VOTING.value,
    ProposalStatus.APPROVED.value,
    ProposalStatus.REJECTED.value,
)


@dataclass
class FeedbackResult:
    vote_id: uuid.UUID
    username: str
    status: str = "exists"  # exists, submitted, error
    error: str | None = None


@dataclass
class ProposalResult:
    proposal_id: int
    proposal_name: str
    status: str = "exists"  # exists, created, error
    error: str | None = None
    summary: str | None = None
    summary_updated_at: datetime | None = None
    feedbacks: list[FeedbackResult] = field(default_factory=list)


class GptSurveyService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_funding_round(self, round_id: uuid.UUID) -> FundingRound | None:
        return await self.session.get(FundingRound, round_id)

    async def get_proposals_by_funding_round(self, round_id: uuid.UUID) -> list[tuple[Proposal, str]]:
        """Proposals past consideration, paired with their author's username."""
        result = await self.session.execute(
            select(Proposal, User.username)
            .join(User, User.id == Proposal.user_id)
            .where(
                Proposal.funding_round_id == round_id,
                Proposal.status.in_(SURVEY_PROPOSAL_STATUSES),
            )
            .order_by(Proposal.id.asc())
        )
        return [(proposal, username) for proposal, username in result.all()]

    async def get_community_feedback(self, proposal_id: int) -> list[tuple[DeliberationVote, str]]:
        result = await self.session.execute(
            select(DeliberationVote, User.username)
            .join(User, User.id == DeliberationVote.user_id)
            .where(
                DeliberationVote.proposal_id == proposal_id,
                DeliberationVote.recommendation.is_(None),
            )
            .order_by(DeliberationVote.created_at.asc())
        )
        return [(vote, username) for vote, username in result.all()]

    async def get_proposal_submission(self, proposal_id: int) -> GptSurveyProposalSubmission | None:
        result = await self.session.execute(
            select(GptSurveyProposalSubmission).where(GptSurveyProposalSubmission.proposal_id == proposal_id)
        )
        return result.scalar_one_or_none()

    async def get_feedback_submission(self, vote_id: uuid.UUID) -> GptSurveyFeedbackSubmission | None:
        result = await self.session.execute(
            select(GptSurveyFeedbackSubmission).where(GptSurveyFeedbackSubmission.deliberation_vote_id == vote_id)
        )
        return result.scalar_one_or_none()

    async def create_proposal_submission(
        self, proposal_id: int, request: dict, response: dict, is_success: bool
    ) -> GptSurveyProposalSubmission:
        submission = GptSurveyProposalSubmission(
            proposal_id=proposal_id,
            request=json.dumps(request),
            response=json.dumps(response),
            is_success=is_success,
        )
        self.session.add(submission)
        await self.session.commit()
        return submission

    async def create_feedback_submission(
        self, vote_id: uuid.UUID, proposal_id: int, request: dict, response: dict, is_success: bool
    ) -> GptSurveyFeedbackSubmission:
        submission = GptSurveyFeedbackSubmission(
            deliberation_vote_id=vote_id,
            proposal_id=proposal_id,
            request=json.dumps(request),
            response=json.dumps(response),
            is_success=is_success,
        )
        self.session.add(submission)
        await self.session.commit()
        return submission

    async def update_proposal_summary(self, proposal_id: int, summary: str) -> None:
        submission = await self.get_proposal_submission(proposal_id)
        if submission is None:
            # Feedback reached the summarizer without a local proposal record
            submission = GptSurveyProposalSubmission(
                proposal_id=proposal_id, request="{}", response="{}", is_success=True
            )
            self.session.add(submission)
        submission.summary = summary
        submission.summary_updated_at = datetime.now(UTC)
        await self.session.commit()

    async def proposal_states(self, round_id: uuid.UUID) -> list[dict]:
        """Per-proposal submission and summary state for the status endpoint."""
        proposals = await self.get_proposals_by_funding_round(round_id)
        states = []
        for proposal, _ in proposals:
            submission = await self.get_proposal_submission(proposal.id)
            feedback_count = len(await self.get_community_feedback(proposal.id))
            states.append(
                {
                    "proposal_id": proposal.id,
                    "proposal_name": proposal.proposal_name,
                    "status": proposal.status,
                    "submitted": submission is not None and submission.is_success,
                    "feedback_count": feedback_count,
                    "summary": submission.summary if submission else None,
                    "summary_updated_at": submission.summary_updated_at if submission else None,
                }
            )
        return states


class GptSurveyRunner:
    """Push a funding round's proposals and feedback to GPT Survey.

    Per proposal:
    1. Register it with the summarizer if it was never submitted
    2. Submit every community feedback not yet submitted
    3. Request a summary when new feedback went out (or ``force_summary``)

    Failures on one proposal are recorded in its result and the run moves on.
    """

    def __init__(
        self,
        client: GptSurveyClient,
        service: GptSurveyService,
        checkpoint: Callable[[str], None] | None = None,
    ):
        self.client = client
        self.service = service
        self.checkpoint = checkpoint or (lambda _name: None)

    async def process_funding_round(self, round_id: uuid.UUID, force_summary: bool = False) -> list[ProposalResult]:
        """Sync every eligible proposal of a round.

        Raises:
            AppError(404): Round not found or without a deliberation phase
            JobCancelledError: Cancellation requested between proposals
        """
        funding_round = await self.service.get_funding_round(round_id)
        if funding_round is None or funding_round.deliberation_phase is None:
            raise AppError.not_found("Funding round not found or missing deliberation phase")

        results = []
        for proposal, author in await self.service.get_proposals_by_funding_round(round_id):
            self.checkpoint(f"proposal:{proposal.id}")
            result = ProposalResult(proposal_id=proposal.id, proposal_name=f"{proposal.id}. {proposal.proposal_name}")
            try:
                await self._process_proposal(funding_round, proposal, author, result, force_summary)
            except JobCancelledError:
                raise
            except Exception as exc:
                result.status = "error"
                result.error = str(exc)
                logger.error("gpt_survey_proposal_failed", proposal_id=proposal.id, error=str(exc))
            results.append(result)

        return results

    async def _process_proposal(
        self,
        funding_round: FundingRound,
        proposal: Proposal,
        author: str,
        result: ProposalResult,
        force_summary: bool,
    ) -> None:
        if await self.service.get_proposal_submission(proposal.id) is None:
            request = GptSurveyClient.build_create_proposal_request(
                proposal_id=proposal.id,
                proposal_name=result.proposal_name,
                proposal_description=proposal.abstract or "",
                proposal_author=author or "anonymous",
                end_time=funding_round.deliberation_phase.end_date,
                funding_round_id=funding_round.mef_id,
            )
            response = await self.client.create_proposal(request)
            await self.service.create_proposal_submission(
                proposal.id, request.to_dict(), response.to_dict(), response.status == 200
            )
            result.status = "created"

        feedback = await self.service.get_community_feedback(proposal.id)
        new_feedback = False
        for vote, username in feedback:
            entry = FeedbackResult(vote_id=vote.id, username=username or "anonymous")
            result.feedbacks.append(entry)
            if await self.service.get_feedback_submission(vote.id) is not None:
                continue

            request = GptSurveyClient.build_add_feedback_request(proposal.id, entry.username, vote.feedback or "")
            try:
                response = await self.client.add_feedback(request)
            except Exception as exc:
                entry.status = "error"
                entry.error = str(exc)
                logger.error("gpt_survey_feedback_failed", proposal_id=proposal.id, vote_id=str(vote.id))
                continue

            await self.service.create_feedback_submission(
                vote.id, proposal.id, request.to_dict(), response.to_dict(), response.status == 200
            )
            entry.status = "submitted"
            new_feedback = True

        if feedback and (force_summary or new_feedback):
            response = await self.client.summarize_feedbacks(proposal.id)
            summary = response.body.get("feedbackSummary") if isinstance(response.body, dict) else None
            if response.status == 201 and summary:
                await self.service.update_proposal_summary(proposal.id, summary)
                result.summary = summary
                result.summary_updated_at = datetime.now(UTC)
                logger.info("gpt_survey_summary_stored", proposal_id=proposal.id)
