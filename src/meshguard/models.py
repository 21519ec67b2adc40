"""Pydantic models for MeshGuard.

This module defines the value objects returned by the client:
- Policy decisions for a checked action
- Agent identities and policies managed through the admin API
- Audit log entries
- Gateway health status

Decisions are immutable snapshots; ``allowed`` is derived from ``decision``
and cannot be set independently.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field


class PolicyDecision(BaseModel):
    """Result of evaluating one action.

    Attributes:
        action: The action that was checked (convention ``verb:resource``).
        decision: ``"allow"`` or ``"deny"``.
        policy: The policy that produced this decision, if reported.
        rule: The specific rule that matched, if reported.
        reason: Human-readable reason for the decision.
        trace_id: Trace ID of the client that requested the decision.

    Example:
        ```python
        decision = await client.check("read:contacts")
        if decision.allowed:
            ...
        ```
    """

    model_config = ConfigDict(frozen=True)

    action: str = Field(..., description="Action that was evaluated")
    decision: Literal["allow", "deny"] = Field(..., description="Decision result")
    policy: str | None = Field(default=None, description="Policy that decided")
    rule: str | None = Field(default=None, description="Rule that matched")
    reason: str | None = Field(default=None, description="Reason for the decision")
    trace_id: str = Field(..., description="Trace ID for request correlation")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def allowed(self) -> bool:
        """Whether the action is allowed."""
        return self.decision == "allow"

    @classmethod
    def allow(
        cls, action: str, *, trace_id: str, policy: str | None = None
    ) -> PolicyDecision:
        return cls(action=action, decision="allow", policy=policy, trace_id=trace_id)

    @classmethod
    def deny(
        cls,
        action: str,
        *,
        trace_id: str,
        policy: str | None = None,
        rule: str | None = None,
        reason: str | None = None,
    ) -> PolicyDecision:
        return cls(
            action=action,
            decision="deny",
            policy=policy,
            rule=rule,
            reason=reason,
            trace_id=trace_id,
        )


class Agent(BaseModel):
    """A MeshGuard agent identity."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Unique agent identifier")
    name: str = Field(..., description="Display name")
    trust_tier: str | None = Field(
        default=None, alias="trustTier", description="Trust tier, e.g. verified"
    )
    tags: list[str] = Field(default_factory=list, description="Agent tags")
    org_id: str | None = Field(default=None, alias="orgId", description="Organization ID")


class Policy(BaseModel):
    """A policy definition as reported by the gateway."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Policy identifier")
    name: str = Field(..., description="Policy name")


class AuditEntry(BaseModel):
    """An entry in the gateway audit log."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(..., description="Unique entry ID")
    timestamp: str = Field(..., description="Timestamp of the entry")
    action: str = Field(..., description="Action that was evaluated")
    decision: str = Field(..., description="allow or deny")
    agent_id: str | None = Field(default=None, alias="agentId", description="Acting agent")
    policy: str | None = Field(default=None, description="Policy that was evaluated")


class HealthStatus(BaseModel):
    """Gateway health status."""

    model_config = ConfigDict(extra="allow")

    status: str = Field(..., description="Reported status, healthy when up")
