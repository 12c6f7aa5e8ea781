"""Funding round phase windows: date validation and phase resolution.

Pure domain functions. No DB access, fully deterministic given ``now``.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum

from mef.domain.validation import ValidationResult

INVALID_RANGE = "INVALID_RANGE"
OUT_OF_BOUNDS = "OUT_OF_BOUNDS"
OUT_OF_SEQUENCE = "OUT_OF_SEQUENCE"

# Phases in chronological order
PHASE_SEQUENCE = ("submission", "consideration", "deliberation", "voting")

_LABELS = {
    "funding_round": "Funding round",
    "submission": "Submission phase",
    "consideration": "Consideration phase",
    "deliberation": "Deliberation phase",
    "voting": "Voting phase",
}


class RoundPhase(StrEnum):
    """Where a funding round stands at a given instant."""

    UPCOMING = "UPCOMING"
    SUBMISSION = "SUBMISSION"
    CONSIDERATION = "CONSIDERATION"
    DELIBERATION = "DELIBERATION"
    VOTING = "VOTING"
    BETWEEN_PHASES = "BETWEEN_PHASES"
    COMPLETED = "COMPLETED"


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@dataclass(frozen=True)
class PhaseWindow:
    start: datetime
    end: datetime

    def __post_init__(self):
        object.__setattr__(self, "start", as_utc(self.start))
        object.__setattr__(self, "end", as_utc(self.end))

    def contains(self, moment: datetime) -> bool:
        return self.start <= as_utc(moment) <= self.end


@dataclass(frozen=True)
class PhaseDates:
    funding_round: PhaseWindow
    submission: PhaseWindow
    consideration: PhaseWindow
    deliberation: PhaseWindow
    voting: PhaseWindow

    def phases(self) -> list[tuple[str, PhaseWindow]]:
        return [(name, getattr(self, name)) for name in PHASE_SEQUENCE]


def validate_phase_dates(dates: PhaseDates) -> ValidationResult:
    """Validate that phase windows are well-formed, nested and sequential.

    Checks run in order and the first failure wins:
        1. every window (funding round first) ends after it starts
        2. every phase lies within the funding round window
        3. each phase ends no later than the next one starts

    Args:
        dates: The funding round window plus its four phase windows

    Returns:
        ValidationResult naming the offending phase when invalid
    """
    for name, window in [("funding_round", dates.funding_round), *dates.phases()]:
        if window.end <= window.start:
            return ValidationResult.fail(
                INVALID_RANGE,
                f"{_LABELS[name]} end date must be after start date",
                phase=name,
            )

    round_window = dates.funding_round
    for name, window in dates.phases():
        if window.start < round_window.start or window.end > round_window.end:
            return ValidationResult.fail(
                OUT_OF_BOUNDS,
                f"{_LABELS[name]} must fall within the funding round dates",
                phase=name,
            )

    phases = dates.phases()
    for (prev_name, prev), (name, window) in zip(phases, phases[1:]):
        if prev.end > window.start:
            return ValidationResult.fail(
                OUT_OF_SEQUENCE,
                f"{_LABELS[prev_name]} must end before {_LABELS[name].lower()} starts",
                phase=name,
            )

    return ValidationResult.ok()


def current_phase(dates: PhaseDates, now: datetime | None = None) -> RoundPhase:
    """Resolve which phase a round is in at ``now``."""
    now = as_utc(now or datetime.now(UTC))

    if now < dates.funding_round.start or now < dates.submission.start:
        return RoundPhase.UPCOMING

    for name, window in dates.phases():
        if window.contains(now):
            return RoundPhase(name.upper())

    if now > dates.funding_round.end or now > dates.voting.end:
        return RoundPhase.COMPLETED

    return RoundPhase.BETWEEN_PHASES


def time_remaining(target: datetime, now: datetime | None = None) -> str:
    """Human-readable distance to ``target``: "3d 4h", "4h 5m" or "5m"."""
    now = as_utc(now or datetime.now(UTC))
    seconds = int(abs((as_utc(target) - now).total_seconds()))

    days, rem = divmod(seconds, 86_400)
    hours, rem = divmod(rem, 3_600)
    minutes = rem // 60

    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def phase_progress(window: PhaseWindow, now: datetime | None = None) -> float:
    """Percentage of ``window`` elapsed at ``now``, clamped to 0..100."""
    now = as_utc(now or datetime.now(UTC))
    if now <= window.start:
        return 0.0
    if now >= window.end:
        return 100.0
    total = (window.end - window.start).total_seconds()
    elapsed = (now - window.start).total_seconds()
    return round(elapsed / total * 100, 2)
