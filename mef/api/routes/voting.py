"""Voting routes: consideration and deliberation votes, ranked vote ballot, results and memos."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mef.api.deps import get_ocv_client
from mef.core.auth import AuthUser, require_auth
from mef.core.config import get_settings
from mef.db.base import get_db_session
from mef.domain.ranked_vote import format_ranked_vote_memo_consideration
from mef.schemas.voting import (
    ConsiderationMemoRequest,
    ConsiderationVoteRequest,
    ConsiderationVoteResponse,
    DeliberationVoteRequest,
    DeliberationVoteResponse,
    MemoResponse,
    RankedVoteMemoRequest,
    StatusMoveResponse,
)
from mef.services.consideration_voting import ConsiderationVotingService
from mef.services.deliberation import DeliberationService
from mef.services.ocv_api import OCVApiClient
from mef.services.ranked_voting import RankedVotingService

router = APIRouter()


@router.post("/proposals/{proposal_id}/consideration-vote", response_model=ConsiderationVoteResponse)
async def submit_consideration_vote(
    proposal_id: int,
    request: ConsiderationVoteRequest,
    user: AuthUser = Depends(require_auth),
    session: AsyncSession = Depends(get_db_session),
):
    """Record a reviewer's consideration vote and apply any resulting status move."""
    service = ConsiderationVotingService(session, get_settings().consideration_reviewer_approval_threshold)
    vote, move = await service.submit_vote(proposal_id, user.user_id, request.decision, request.feedback)

    return ConsiderationVoteResponse(
        proposal_id=proposal_id,
        decision=vote.decision,
        feedback=vote.feedback,
        status_move=StatusMoveResponse(
            old_status=move.old_status,
            new_status=move.new_status,
            ocv_eligible=move.ocv_eligible,
            reviewer_votes_given=move.reviewer_votes_given,
            reviewer_votes_required=move.reviewer_votes_required,
        )
        if move
        else None,
    )


@router.post("/proposals/{proposal_id}/deliberation-vote", response_model=DeliberationVoteResponse)
async def submit_deliberation_vote(
    proposal_id: int,
    request: DeliberationVoteRequest,
    user: AuthUser = Depends(require_auth),
    session: AsyncSession = Depends(get_db_session),
):
    vote = await DeliberationService(session).submit_deliberation(
        proposal_id, user.user_id, request.feedback, request.recommendation
    )
    return DeliberationVoteResponse.model_validate(vote)


@router.get("/voting/ranked")
async def get_ranked_ballot(
    funding_round_id: uuid.UUID,
    user: AuthUser = Depends(require_auth),
    session: AsyncSession = Depends(get_db_session),
):
    """DELIBERATION proposals of a round, most reviewer recommendations first."""
    return await RankedVotingService(session).get_eligible_proposals(funding_round_id)


@router.get("/voting/ranked-votes")
async def get_ranked_vote_results(
    funding_round_id: uuid.UUID,
    user: AuthUser = Depends(require_auth),
    session: AsyncSession = Depends(get_db_session),
    client: OCVApiClient = Depends(get_ocv_client),
):
    """On-chain ranked vote result for the round's voting window, in rank order."""
    return await RankedVotingService(session).get_ranked_results(funding_round_id, client)


@router.post("/voting/ranked/memo", response_model=MemoResponse)
async def build_ranked_vote_memo(
    request: RankedVoteMemoRequest,
    user: AuthUser = Depends(require_auth),
    session: AsyncSession = Depends(get_db_session),
):
    memo = await RankedVotingService(session).build_memo(request.funding_round_id, request.proposal_ids)
    return MemoResponse(memo=memo)


@router.post("/voting/consideration/memo", response_model=MemoResponse)
async def build_consideration_memo(
    request: ConsiderationMemoRequest,
    user: AuthUser = Depends(require_auth),
):
    return MemoResponse(memo=format_ranked_vote_memo_consideration(request.proposal_ids))
