"""Structured validation results shared by the pure domain guards."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validation: ``valid`` plus, when invalid, what failed.

    Guards return these instead of raising so route handlers can map them
    onto 400 responses.
    """

    valid: bool
    error: str | None = None
    code: str | None = None
    phase: str | None = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def fail(cls, code: str, error: str, phase: str | None = None) -> "ValidationResult":
        return cls(valid=False, error=error, code=code, phase=phase)

    def to_dict(self) -> dict:
        if self.valid:
            return {"valid": True}
        result = {"valid": False, "error": self.error, "code": self.code}
        if self.phase is not None:
            result["phase"] = self.phase
        return result
