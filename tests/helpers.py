"""Payload builders and auth helpers shared by the test modules."""

import uuid
from datetime import UTC, datetime, timedelta

import jwt as pyjwt

from mef.core.config import get_settings

PHASE_NAMES = ("submission", "consideration", "deliberation", "voting")
PHASE_LENGTH = timedelta(days=2)


def round_dates(now: datetime, active: str = "submission") -> dict:
    """Consecutive two-day phases arranged so ``now`` falls mid-way through ``active``.

    ``active`` may also be "upcoming" (round starts tomorrow) or "completed"
    (round ended yesterday).
    """
    if active == "upcoming":
        start = now + timedelta(days=1)
    elif active == "completed":
        start = now - PHASE_LENGTH * 4 - timedelta(days=1)
    else:
        index = PHASE_NAMES.index(active)
        start = now - PHASE_LENGTH * index - PHASE_LENGTH / 2

    dates = {"start_date": start, "end_date": start + PHASE_LENGTH * 4}
    for i, name in enumerate(PHASE_NAMES):
        dates[name] = (start + PHASE_LENGTH * i, start + PHASE_LENGTH * (i + 1))
    return dates


def round_payload(now: datetime, active: str = "submission", **overrides) -> dict:
    """JSON body for the admin create/update funding round endpoints."""
    dates = round_dates(now, active)
    payload = {
        "name": "MEF Round",
        "description": "Community grants",
        "total_budget": "50000.00",
        "start_date": dates["start_date"].isoformat(),
        "end_date": dates["end_date"].isoformat(),
    }
    for name in PHASE_NAMES:
        start, end = dates[name]
        payload[name] = {"start_date": start.isoformat(), "end_date": end.isoformat()}
    payload.update(overrides)
    return payload


def proposal_payload(**overrides) -> dict:
    payload = {
        "proposal_name": "zkApp Tooling Grant",
        "abstract": "a" * 120,
        "motivation": "m" * 220,
        "rationale": "r" * 320,
        "delivery_requirements": "d" * 520,
        "security_and_performance": "s" * 220,
        "budget_request": "1500.50",
        "email": "builder@example.com",
    }
    payload.update(overrides)
    return payload


def make_token(user_id: uuid.UUID, expires_in: timedelta = timedelta(hours=1)) -> str:
    settings = get_settings()
    return pyjwt.encode(
        {"sub": str(user_id), "exp": datetime.now(UTC) + expires_in},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {make_token(user.id)}"}
