"""Typed failures raised by the MeshGuard client.

Every error carries a ``kind`` from the closed :class:`ErrorKind` enumeration,
so callers can dispatch on ``error.kind`` as well as on the exception class:

    try:
        await client.enforce("write:email")
    except GovernanceError as exc:
        match exc.kind:
            case ErrorKind.POLICY_DENIED:
                ...
            case ErrorKind.RATE_LIMIT:
                ...
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from meshguard.models import PolicyDecision

DEFAULT_DENY_REASON = "Access denied by policy"


class ErrorKind(StrEnum):
    """Closed set of governance failure kinds."""

    AUTHENTICATION = "authentication"
    POLICY_DENIED = "policy_denied"
    RATE_LIMIT = "rate_limit"
    GENERIC = "generic"


class GovernanceError(Exception):
    """Base error for all MeshGuard failures."""

    kind: ClassVar[ErrorKind] = ErrorKind.GENERIC

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body


class AuthenticationError(GovernanceError):
    """Credential missing, invalid or expired (HTTP 401)."""

    kind: ClassVar[ErrorKind] = ErrorKind.AUTHENTICATION

    def __init__(
        self,
        message: str = "Invalid or expired token",
        *,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code)


class PolicyDeniedError(GovernanceError):
    """Action denied by policy (HTTP 403).

    Attributes:
        action: The action that was denied.
        policy: The policy that denied the action, if reported.
        rule: The specific rule that matched, if reported.
        reason: Human-readable reason for the denial.
    """

    kind: ClassVar[ErrorKind] = ErrorKind.POLICY_DENIED

    def __init__(
        self,
        action: str,
        *,
        policy: str | None = None,
        rule: str | None = None,
        reason: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.action = action
        self.policy = policy
        self.rule = rule
        self.reason = reason or DEFAULT_DENY_REASON
        super().__init__(self._compose_message(), status_code=status_code)

    def _compose_message(self) -> str:
        message = f"Action '{self.action}' denied"
        if self.policy:
            message += f" by policy '{self.policy}'"
        if self.rule:
            message += f" (rule: {self.rule})"
        return f"{message}: {self.reason}"

    @classmethod
    def from_decision(cls, decision: PolicyDecision) -> PolicyDeniedError:
        """Build the error for a deny decision."""
        return cls(
            decision.action,
            policy=decision.policy,
            rule=decision.rule,
            reason=decision.reason,
        )


class RateLimitError(GovernanceError):
    """Request throttled by the gateway (HTTP 429)."""

    kind: ClassVar[ErrorKind] = ErrorKind.RATE_LIMIT

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        retry_after: float | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.retry_after = retry_after
