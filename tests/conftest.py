"""Shared test fixtures: in-memory database, model factories, HTTP client."""

import os
import uuid
from datetime import UTC, datetime
from decimal import Decimal

import fakeredis.aioredis
import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from mef.db.base import Base
from mef.db.models import (
    ConsiderationPhase,
    DeliberationPhase,
    FundingRound,
    FundingRoundReviewerGroup,
    Proposal,
    ReviewerGroup,
    ReviewerGroupMember,
    SubmissionPhase,
    User,
    VotingPhase,
)
from mef.domain.proposal_status import ProposalStatus
from mef.domain.round_status import FundingRoundStatus
from tests.helpers import PHASE_NAMES, round_dates

# SQLite in memory by default; point at PostgreSQL to exercise JSONB and advisory locks
_TEST_DB_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

PHASE_MODELS = (SubmissionPhase, ConsiderationPhase, DeliberationPhase, VotingPhase)


@pytest.fixture
def now() -> datetime:
    return datetime.now(UTC)


@pytest.fixture
async def engine() -> AsyncEngine:
    """Fresh schema per test."""
    kwargs = {}
    if _TEST_DB_URL.startswith("sqlite"):
        kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    engine = create_async_engine(_TEST_DB_URL, echo=False, **kwargs)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def fake_redis():
    client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.aclose()


# ---------- Factories ----------


@pytest.fixture
def make_user(session_factory):
    async def _make(username: str = "user", is_admin: bool = False) -> User:
        user = User(id=uuid.uuid4(), username=f"{username}-{uuid.uuid4().hex[:6]}", is_admin=is_admin)
        async with session_factory() as session:
            session.add(user)
            await session.commit()
        return user

    return _make


@pytest.fixture
def make_round(session_factory, now):
    async def _make(
        active: str = "submission",
        status: FundingRoundStatus = FundingRoundStatus.ACTIVE,
        mef_id: int | None = None,
        reviewers: list[User] | None = None,
        with_phases: bool = True,
    ) -> FundingRound:
        dates = round_dates(now, active)
        funding_round = FundingRound(
            id=uuid.uuid4(),
            mef_id=mef_id or int(uuid.uuid4().int % 100_000) + 1,
            name="Test Round",
            description="",
            status=FundingRoundStatus(status).value,
            total_budget=Decimal("100000.00"),
            start_date=dates["start_date"],
            end_date=dates["end_date"],
        )
        if with_phases:
            for name, model in zip(PHASE_NAMES, PHASE_MODELS):
                start, end = dates[name]
                setattr(funding_round, f"{name}_phase", model(start_date=start, end_date=end))

        async with session_factory() as session:
            session.add(funding_round)
            if reviewers:
                group = ReviewerGroup(id=uuid.uuid4(), name=f"reviewers-{uuid.uuid4().hex[:6]}")
                session.add(group)
                session.add(FundingRoundReviewerGroup(funding_round_id=funding_round.id, reviewer_group_id=group.id))
                for reviewer in reviewers:
                    session.add(ReviewerGroupMember(reviewer_group_id=group.id, user_id=reviewer.id))
            await session.commit()
        return funding_round

    return _make


@pytest.fixture
def make_proposal(session_factory):
    async def _make(
        user: User,
        funding_round: FundingRound | None = None,
        status: ProposalStatus = ProposalStatus.CONSIDERATION,
        name: str = "Proposal under test",
    ) -> Proposal:
        proposal = Proposal(
            user_id=user.id,
            funding_round_id=funding_round.id if funding_round else None,
            proposal_name=name,
            abstract="An abstract",
            budget_request=Decimal("1000.00"),
            status=ProposalStatus(status).value,
        )
        async with session_factory() as session:
            session.add(proposal)
            await session.commit()
        return proposal

    return _make


# ---------- HTTP ----------


@pytest.fixture
def app(session_factory):
    """App without lifespan; database dependency bound to the test engine."""
    from mef.db.base import get_db_session
    from mef.main import create_app

    application = create_app(use_lifespan=False)

    async def _test_session():
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db_session] = _test_session
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client
