"""Re-export all models so Base.metadata sees them."""

from mef.db.models.funding_round import (
    ConsiderationPhase,
    DeliberationPhase,
    FundingRound,
    SubmissionPhase,
    VotingPhase,
)
from mef.db.models.gpt_survey import GptSurveyFeedbackSubmission, GptSurveyProposalSubmission
from mef.db.models.ocv_vote import OCVConsiderationVote
from mef.db.models.proposal import Proposal
from mef.db.models.reviewer_group import FundingRoundReviewerGroup, ReviewerGroup, ReviewerGroupMember
from mef.db.models.user import User
from mef.db.models.vote import ConsiderationVote, DeliberationVote
from mef.db.models.worker_heartbeat import WorkerHeartbeat

__all__ = [
    "ConsiderationPhase",
    "ConsiderationVote",
    "DeliberationPhase",
    "DeliberationVote",
    "FundingRound",
    "FundingRoundReviewerGroup",
    "GptSurveyFeedbackSubmission",
    "GptSurveyProposalSubmission",
    "OCVConsiderationVote",
    "Proposal",
    "ReviewerGroup",
    "ReviewerGroupMember",
    "SubmissionPhase",
    "User",
    "VotingPhase",
    "WorkerHeartbeat",
]
