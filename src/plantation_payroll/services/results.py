"""Result objects returned by the pay calculation orchestrators."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ServiceResult:
    """Outcome of an orchestrator call.

    No-data short-circuits (resource-only work order, nothing to reverse)
    are successes with an informational message. Failures mean the
    transaction was rolled back and nothing was persisted.
    """

    success: bool
    message: str

    @classmethod
    def ok(cls, message: str) -> ServiceResult:
        return cls(success=True, message=message)

    @classmethod
    def fail(cls, message: str) -> ServiceResult:
        return cls(success=False, message=message)

    @property
    def failure(self) -> bool:
        return not self.success
