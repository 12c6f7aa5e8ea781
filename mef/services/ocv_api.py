"""Client for the OCV (on-chain voting) API.

Fetches the community tally for one proposal over its consideration window,
and the ranked vote result for a round over its voting window.
"""

from datetime import datetime
from typing import TypeVar

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, ValidationError

from mef.core.config import get_settings
from mef.core.exceptions import ExternalServiceError

logger = structlog.get_logger(__name__)

ResponseModel = TypeVar("ResponseModel", bound=BaseModel)


class OCVVote(BaseModel):
    model_config = ConfigDict(extra="allow")

    account: str
    hash: str
    memo: str
    height: int
    status: str
    timestamp: int
    nonce: int


class OCVVoteResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    proposal_id: int
    total_community_votes: int = 0
    total_positive_community_votes: int = 0
    total_negative_community_votes: int = 0
    total_stake_weight: str = "0"
    positive_stake_weight: str = "0"
    negative_stake_weight: str = "0"
    vote_status: str = ""
    eligible: bool = False
    votes: list[OCVVote] = []


class OCVRankedVoteResponse(BaseModel):
    """Ranked vote outcome for one MEF round; ``winners`` is in final rank order."""

    model_config = ConfigDict(extra="allow")

    round_id: int
    total_votes: int = 0
    winners: list[int] = []
    stats: dict = {}
    votes: list[OCVVote] = []


def to_epoch_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


class OCVApiClient:
    """Client for the OCV consideration vote endpoint."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize OCV client.

        Args:
            base_url: API root; defaults to settings.ocv_api_base_url
            timeout: Request timeout in seconds
            transport: Optional httpx transport (MockTransport in tests)
        """
        settings = get_settings()
        self.base_url = (base_url or settings.ocv_api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.ocv_api_timeout_seconds
        self.transport = transport

    async def _fetch(self, url: str, model: type[ResponseModel], **log_context) -> ResponseModel:
        """GET ``url`` and validate the body as ``model``.

        Raises:
            ExternalServiceError: Network failure, non-2xx status or a body
                that does not match the expected shape
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url, headers={"Accept": "application/json"})
        except httpx.HTTPError as exc:
            logger.error("ocv_request_failed", error=str(exc), **log_context)
            raise ExternalServiceError("OCV API", str(exc) or type(exc).__name__) from exc

        if response.status_code >= 400:
            logger.error("ocv_request_rejected", status_code=response.status_code, **log_context)
            raise ExternalServiceError("OCV API", f"HTTP {response.status_code}")

        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise ExternalServiceError("OCV API", f"unexpected response: {exc}") from exc

    async def get_consideration_votes(
        self,
        proposal_id: int,
        start_time: datetime,
        end_time: datetime,
    ) -> OCVVoteResponse:
        """Fetch the tally for ``proposal_id`` between two instants."""
        url = (
            f"{self.base_url}/api/mef_proposal_consideration/"
            f"{proposal_id}/{to_epoch_ms(start_time)}/{to_epoch_ms(end_time)}"
        )
        data = await self._fetch(url, OCVVoteResponse, proposal_id=proposal_id)
        logger.debug("ocv_votes_fetched", proposal_id=proposal_id, eligible=data.eligible)
        return data

    async def get_ranked_votes(
        self,
        mef_id: int,
        start_time: datetime,
        end_time: datetime,
    ) -> OCVRankedVoteResponse:
        """Fetch the ranked vote result for round ``mef_id`` over its voting window."""
        url = f"{self.base_url}/api/mef_ranked_vote/{mef_id}/{to_epoch_ms(start_time)}/{to_epoch_ms(end_time)}"
        data = await self._fetch(url, OCVRankedVoteResponse, mef_id=mef_id)
        logger.debug("ocv_ranked_votes_fetched", mef_id=mef_id, total_votes=data.total_votes)
        return data
