"""GPT Survey integration: push proposals and deliberation feedback, fetch summaries.

The summarizer exposes a small REST API under ``/api/govbot``:
- POST /proposals                         register a proposal
- POST /proposals/{id}/feedbacks          add one piece of community feedback
- POST /proposals/{id}/feedbacks/summary  summarize feedback (201 + feedbackSummary)
- GET  /                                  health check
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx
import structlog

from mef.core.config import get_settings
from mef.core.exceptions import ExternalServiceError

logger = structlog.get_logger(__name__)


@dataclass
class GptSurveyResponse:
    status: int
    body: Any

    def to_dict(self) -> dict:
        return {"status": self.status, "body": self.body}


@dataclass
class ApiRequestInfo:
    method: str
    endpoint: str
    body: dict | None = None

    def to_dict(self) -> dict:
        return {"method": self.method, "endpoint": self.endpoint, "body": self.body}


class GptSurveyClient:
    """Client for the GPT Survey summarizer API."""

    API_PREFIX = "/api/govbot"

    def __init__(
        self,
        base_url: str | None = None,
        auth_secret: str | None = None,
        dry_run: bool | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ):
        """Initialize GPT Survey client.

        Args:
            base_url: API root; defaults to settings.gpt_survey_api_url
            auth_secret: Bearer token; defaults to settings.gpt_survey_api_token
            dry_run: Log requests instead of sending them
            transport: Optional httpx transport (MockTransport in tests)
            timeout: Request timeout in seconds
        """
        settings = get_settings()
        self.base_url = (base_url if base_url is not None else settings.gpt_survey_api_url).rstrip("/")
        self.auth_secret = auth_secret if auth_secret is not None else settings.gpt_survey_api_token
        self.dry_run = settings.gpt_survey_dry_run if dry_run is None else dry_run
        self.transport = transport
        self.timeout = timeout

        if not self.base_url:
            raise ExternalServiceError("GPT Survey", "GPT_SURVEY_API_URL is not set")

    @classmethod
    def build_create_proposal_request(
        cls,
        proposal_id: int,
        proposal_name: str,
        proposal_description: str,
        proposal_author: str,
        end_time: datetime,
        funding_round_id: int,
    ) -> ApiRequestInfo:
        return ApiRequestInfo(
            method="POST",
            endpoint=f"{cls.API_PREFIX}/proposals",
            body={
                "proposalId": str(proposal_id),
                "proposalName": proposal_name,
                "proposalDescription": proposal_description,
                "proposalAuthor": proposal_author,
                "endTime": end_time.isoformat(),
                "fundingRoundId": funding_round_id,
            },
        )

    @classmethod
    def build_add_feedback_request(cls, proposal_id: int, username: str, feedback_content: str) -> ApiRequestInfo:
        return ApiRequestInfo(
            method="POST",
            endpoint=f"{cls.API_PREFIX}/proposals/{proposal_id}/feedbacks",
            body={"username": username, "feedbackContent": feedback_content},
        )

    async def _request(self, request: ApiRequestInfo) -> GptSurveyResponse:
        if self.dry_run:
            logger.info("gpt_survey_dry_run_request", method=request.method, endpoint=request.endpoint)
            return GptSurveyResponse(status=200, body={"message": "Dry run - no actual request made"})

        headers = {
            "Authorization": f"Bearer {self.auth_secret}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(
                    request.method,
                    f"{self.base_url}{request.endpoint}",
                    headers=headers,
                    json=request.body,
                )
        except httpx.HTTPError as exc:
            logger.error("gpt_survey_request_failed", endpoint=request.endpoint, error=str(exc))
            raise ExternalServiceError("GPT Survey", str(exc) or type(exc).__name__) from exc

        try:
            body = response.json()
        except ValueError:
            body = response.text

        logger.info("gpt_survey_request", endpoint=request.endpoint, status_code=response.status_code)
        return GptSurveyResponse(status=response.status_code, body=body)

    async def create_proposal(self, request: ApiRequestInfo) -> GptSurveyResponse:
        return await self._request(request)

    async def add_feedback(self, request: ApiRequestInfo) -> GptSurveyResponse:
        return await self._request(request)

    async def summarize_feedbacks(self, proposal_id: int) -> GptSurveyResponse:
        return await self._request(
            ApiRequestInfo(method="POST", endpoint=f"{self.API_PREFIX}/proposals/{proposal_id}/feedbacks/summary")
        )

    async def health_check(self) -> GptSurveyResponse:
        return await self._request(ApiRequestInfo(method="GET", endpoint=self.API_PREFIX))
