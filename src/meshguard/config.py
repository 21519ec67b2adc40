"""Client configuration resolved once from explicit values and the environment."""

from __future__ import annotations

import os
import uuid
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_GATEWAY_URL = "http://localhost:3100"
DEFAULT_TIMEOUT = 30.0

ENV_GATEWAY_URL = "MESHGUARD_GATEWAY_URL"
ENV_AGENT_TOKEN = "MESHGUARD_AGENT_TOKEN"
ENV_ADMIN_TOKEN = "MESHGUARD_ADMIN_TOKEN"
ENV_TIMEOUT = "MESHGUARD_TIMEOUT"
ENV_TRACE_ID = "MESHGUARD_TRACE_ID"


def _new_trace_id() -> str:
    return str(uuid.uuid4())


class ClientSettings(BaseModel):
    """Immutable connection settings for :class:`~meshguard.client.MeshGuardClient`.

    Attributes:
        gateway_url: Gateway base URL without trailing slashes.
        agent_token: Bearer token sent on action-checking endpoints.
        admin_token: Token required by every ``/admin`` operation.
        timeout: Per-request timeout in seconds.
        trace_id: Correlation ID attached to every outgoing request.
    """

    model_config = ConfigDict(frozen=True)

    gateway_url: str = Field(default=DEFAULT_GATEWAY_URL)
    agent_token: str | None = Field(default=None, repr=False)
    admin_token: str | None = Field(default=None, repr=False)
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    trace_id: str = Field(default_factory=_new_trace_id, min_length=1)

    @field_validator("gateway_url")
    @classmethod
    def normalize_gateway_url(cls, value: str) -> str:
        """Strip surrounding whitespace and trailing slashes."""
        normalized = value.strip().rstrip("/")
        if not normalized:
            raise ValueError("gateway_url must be non-empty")
        return normalized

    @classmethod
    def resolve(
        cls,
        *,
        gateway_url: str | None = None,
        agent_token: str | None = None,
        admin_token: str | None = None,
        timeout: float | None = None,
        trace_id: str | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> ClientSettings:
        """Resolve each field as explicit value > environment variable > default."""
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}

        resolved_url = gateway_url or env.get(ENV_GATEWAY_URL)
        if resolved_url:
            values["gateway_url"] = resolved_url

        values["agent_token"] = agent_token or env.get(ENV_AGENT_TOKEN) or None
        values["admin_token"] = admin_token or env.get(ENV_ADMIN_TOKEN) or None

        if timeout is not None:
            values["timeout"] = timeout
        elif env.get(ENV_TIMEOUT):
            try:
                values["timeout"] = float(env[ENV_TIMEOUT])
            except ValueError as exc:
                raise ValueError(
                    f"{ENV_TIMEOUT} must be a number of seconds, got {env[ENV_TIMEOUT]!r}"
                ) from exc

        resolved_trace_id = trace_id or env.get(ENV_TRACE_ID)
        if resolved_trace_id:
            values["trace_id"] = resolved_trace_id

        return cls.model_validate(values)
