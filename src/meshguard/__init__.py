"""MeshGuard: governance SDK for AI agents.

MeshGuard asks a governance gateway whether an agent action is permitted,
enforces the answer, and wraps tools so every invocation is checked first.

Key features:
    - Three-tier decision API (check / enforce / govern)
    - Typed errors for authentication, policy denial and rate limits
    - Governed LangChain-style tools and toolkits
    - Admin access to agents, policies and the audit log

Example:
    >>> from meshguard import MeshGuardClient
    >>> async with MeshGuardClient.from_env() as client:
    ...     decision = await client.check("read:contacts")
    ...     if decision.allowed:
    ...         ...
"""

from meshguard.client import MeshGuardClient
from meshguard.config import ClientSettings
from meshguard.exceptions import (
    AuthenticationError,
    ErrorKind,
    GovernanceError,
    PolicyDeniedError,
    RateLimitError,
)
from meshguard.models import Agent, AuditEntry, HealthStatus, Policy, PolicyDecision

__all__ = [
    "Agent",
    "AuditEntry",
    "AuthenticationError",
    "ClientSettings",
    "ErrorKind",
    "GovernanceError",
    "HealthStatus",
    "MeshGuardClient",
    "Policy",
    "PolicyDecision",
    "PolicyDeniedError",
    "RateLimitError",
    "__version__",
]

__version__ = "0.3.0"
