"""Async HTTP client for the MeshGuard gateway."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Mapping
from types import TracebackType
from typing import Any, TypeVar, cast
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from meshguard.config import ClientSettings
from meshguard.exceptions import (
    AuthenticationError,
    GovernanceError,
    PolicyDeniedError,
    RateLimitError,
)
from meshguard.logging import get_logger
from meshguard.models import Agent, AuditEntry, HealthStatus, Policy, PolicyDecision

logger = get_logger(__name__)

T = TypeVar("T")
ModelT = TypeVar("ModelT", bound=BaseModel)

TRACE_HEADER = "X-MeshGuard-Trace-ID"
ACTION_HEADER = "X-MeshGuard-Action"
RESOURCE_HEADER = "X-MeshGuard-Resource"
ADMIN_TOKEN_HEADER = "X-Admin-Token"


def _string_field(payload: Mapping[str, Any], key: str) -> str | None:
    value = payload.get(key)
    return value if isinstance(value, str) else None


def _header_value(name: str, value: str) -> str:
    # HTTP header values are sent as ASCII; anything else would fail inside httpx.
    if not (value.isascii() and value.isprintable()):
        raise ValueError(f"{name} must contain only printable ASCII characters: {value!r}")
    return value


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class MeshGuardClient:
    """Async client for the MeshGuard governance gateway.

    The client offers three tiers of policy API:

    - :meth:`check` returns a :class:`PolicyDecision` and never raises for a deny.
    - :meth:`enforce` raises :class:`PolicyDeniedError` when the action is denied.
    - :meth:`govern` runs a callable only when the action is allowed.

    Example:
        >>> async with MeshGuardClient(agent_token="tok_...") as client:
        ...     decision = await client.check("read:contacts")
        ...     contacts = await client.govern("read:contacts", fetch_contacts)

    Configuration is immutable once the client is built. Use :meth:`from_env`
    to resolve missing values from ``MESHGUARD_*`` environment variables.

    Gateway redirects are followed for policy, proxy and health requests;
    httpx drops the ``Authorization`` header on cross-origin hops. Admin
    requests never follow redirects, so the admin token stays with the
    configured gateway.
    """

    def __init__(
        self,
        gateway_url: str | None = None,
        *,
        agent_token: str | None = None,
        admin_token: str | None = None,
        timeout: float | None = None,
        trace_id: str | None = None,
        settings: ClientSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if settings is None:
            explicit = {
                "gateway_url": gateway_url,
                "agent_token": agent_token,
                "admin_token": admin_token,
                "timeout": timeout,
                "trace_id": trace_id,
            }
            settings = ClientSettings.model_validate(
                {key: value for key, value in explicit.items() if value is not None}
            )
        elif any(
            value is not None
            for value in (gateway_url, agent_token, admin_token, timeout, trace_id)
        ):
            raise ValueError("pass either settings or explicit options, not both")
        self._settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.gateway_url,
            timeout=settings.timeout,
            transport=transport,
            follow_redirects=True,
        )

    @classmethod
    def from_env(
        cls,
        *,
        gateway_url: str | None = None,
        agent_token: str | None = None,
        admin_token: str | None = None,
        timeout: float | None = None,
        trace_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> MeshGuardClient:
        """Create a client, filling unset options from ``MESHGUARD_*`` variables."""
        settings = ClientSettings.resolve(
            gateway_url=gateway_url,
            agent_token=agent_token,
            admin_token=admin_token,
            timeout=timeout,
            trace_id=trace_id,
        )
        return cls(settings=settings, transport=transport)

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def gateway_url(self) -> str:
        return self._settings.gateway_url

    @property
    def agent_token(self) -> str | None:
        return self._settings.agent_token

    @property
    def admin_token(self) -> str | None:
        return self._settings.admin_token

    @property
    def timeout(self) -> float:
        return self._settings.timeout

    @property
    def trace_id(self) -> str:
        return self._settings.trace_id

    # ------------------------------------------------------------------
    # Request helpers
    # ------------------------------------------------------------------

    def _governance_headers(
        self, action: str, resource: str | None = None
    ) -> dict[str, str]:
        headers = {TRACE_HEADER: self.trace_id, ACTION_HEADER: _header_value("action", action)}
        if resource:
            headers[RESOURCE_HEADER] = _header_value("resource", resource)
        if self.agent_token:
            headers["Authorization"] = f"Bearer {self.agent_token}"
        return headers

    def _admin_headers(self) -> dict[str, str]:
        if not self.admin_token:
            raise AuthenticationError("Admin token required for this operation")
        return {ADMIN_TOKEN_HEADER: self.admin_token, TRACE_HEADER: self.trace_id}

    @staticmethod
    def _decode_payload(response: httpx.Response) -> dict[str, Any]:
        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError:
            return {}
        return cast(dict[str, Any], payload) if isinstance(payload, dict) else {}

    def _raise_for_status(
        self, response: httpx.Response, *, action: str | None = None
    ) -> None:
        """Map failure statuses onto the error taxonomy."""
        status = response.status_code
        if status == 401:
            raise AuthenticationError(status_code=status)
        if status == 403:
            payload = self._decode_payload(response)
            raise PolicyDeniedError(
                _string_field(payload, "action") or action or "unknown",
                policy=_string_field(payload, "policy"),
                rule=_string_field(payload, "rule"),
                reason=_string_field(payload, "message"),
                status_code=status,
            )
        if status == 429:
            raise RateLimitError(
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
                status_code=status,
            )
        if status >= 400:
            raise GovernanceError(
                f"Request failed: {status} {response.text}",
                status_code=status,
                body=response.text,
            )

    async def _admin_json(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        headers = self._admin_headers()
        response = await self._client.request(
            method,
            path,
            headers=headers,
            json=json_body,
            params=params,
            follow_redirects=False,
        )
        if response.is_redirect:
            raise GovernanceError(
                f"Admin request redirected to {response.headers.get('Location')}; "
                "refusing to resend the admin token",
                status_code=response.status_code,
                body=response.text,
            )
        self._raise_for_status(response)
        return self._decode_payload(response)

    @staticmethod
    def _parse_items(
        payload: Mapping[str, Any], key: str, model: type[ModelT]
    ) -> list[ModelT]:
        items = payload.get(key) or []
        if not isinstance(items, list):
            raise GovernanceError(f"Malformed gateway response: '{key}' is not a list")
        try:
            return [model.model_validate(item) for item in items]
        except ValidationError as exc:
            raise GovernanceError(f"Malformed gateway response: {exc}") from exc

    # ------------------------------------------------------------------
    # Core governance
    # ------------------------------------------------------------------

    async def check(self, action: str, resource: str | None = None) -> PolicyDecision:
        """Check whether an action is allowed by policy.

        Returns a deny decision instead of raising when the gateway answers
        403. Authentication, rate-limit and other failures raise; transport
        errors from httpx propagate unchanged.
        """
        response = await self._client.get(
            "/proxy/check", headers=self._governance_headers(action, resource)
        )
        if response.status_code == 403:
            payload = self._decode_payload(response)
            decision = PolicyDecision.deny(
                action,
                trace_id=self.trace_id,
                policy=_string_field(payload, "policy"),
                rule=_string_field(payload, "rule"),
                reason=_string_field(payload, "message"),
            )
        else:
            self._raise_for_status(response, action=action)
            if response.status_code != 200:
                raise GovernanceError(
                    f"Unexpected policy check status: {response.status_code}",
                    status_code=response.status_code,
                    body=response.text,
                )
            payload = self._decode_payload(response)
            decision = PolicyDecision.allow(
                action,
                trace_id=self.trace_id,
                policy=_string_field(payload, "policy"),
            )
        logger.debug(
            "policy_check",
            action=action,
            resource=resource,
            decision=decision.decision,
            policy=decision.policy,
            trace_id=self.trace_id,
        )
        return decision

    async def enforce(self, action: str, resource: str | None = None) -> PolicyDecision:
        """Enforce policy, raising :class:`PolicyDeniedError` on deny."""
        decision = await self.check(action, resource)
        if not decision.allowed:
            logger.info(
                "policy_denied",
                action=action,
                policy=decision.policy,
                rule=decision.rule,
                trace_id=self.trace_id,
            )
            raise PolicyDeniedError.from_decision(decision)
        return decision

    async def govern(
        self,
        action: str,
        fn: Callable[[], Awaitable[T] | T],
        resource: str | None = None,
    ) -> T:
        """Run ``fn`` only if the action is allowed by policy.

        ``fn`` may be synchronous or return an awaitable; it is never called
        when the action is denied.

        Example:
            >>> contacts = await client.govern("read:contacts", db.contacts.find_all)
        """
        await self.enforce(action, resource)
        result = fn()
        if inspect.isawaitable(result):
            return cast(T, await result)
        return result

    # ------------------------------------------------------------------
    # Proxy requests
    # ------------------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        action: str,
        *,
        headers: Mapping[str, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a governed request through the gateway proxy.

        Caller headers are merged first so they cannot replace the trace,
        action or authorization headers. Extra keyword arguments (``json``,
        ``content``, ``params``, ...) are passed to httpx.
        """
        merged = httpx.Headers(headers)
        merged.update(self._governance_headers(action))
        response = await self._client.request(
            method.upper(),
            f"/proxy/{path.lstrip('/')}",
            headers=merged,
            **kwargs,
        )
        self._raise_for_status(response, action=action)
        return response

    async def get(self, path: str, action: str, **kwargs: Any) -> httpx.Response:
        """GET through the governance proxy."""
        return await self.request("GET", path, action, **kwargs)

    async def post(self, path: str, action: str, **kwargs: Any) -> httpx.Response:
        """POST through the governance proxy."""
        return await self.request("POST", path, action, **kwargs)

    async def put(self, path: str, action: str, **kwargs: Any) -> httpx.Response:
        """PUT through the governance proxy."""
        return await self.request("PUT", path, action, **kwargs)

    async def delete(self, path: str, action: str, **kwargs: Any) -> httpx.Response:
        """DELETE through the governance proxy."""
        return await self.request("DELETE", path, action, **kwargs)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def health(self) -> HealthStatus:
        """Fetch gateway health details."""
        response = await self._client.get("/health", headers={TRACE_HEADER: self.trace_id})
        self._raise_for_status(response)
        try:
            return HealthStatus.model_validate(self._decode_payload(response))
        except ValidationError as exc:
            raise GovernanceError(f"Malformed health response: {exc}") from exc

    async def is_healthy(self) -> bool:
        """Return True only when the gateway reports ``healthy``."""
        try:
            status = await self.health()
        except Exception as exc:
            logger.warning("gateway_unhealthy", error=str(exc), gateway_url=self.gateway_url)
            return False
        return status.status == "healthy"

    # ------------------------------------------------------------------
    # Admin operations
    # ------------------------------------------------------------------

    async def list_agents(self) -> list[Agent]:
        """List all agents (requires admin token)."""
        payload = await self._admin_json("GET", "/admin/agents")
        return self._parse_items(payload, "agents", Agent)

    async def create_agent(
        self,
        name: str,
        *,
        trust_tier: str | None = None,
        tags: list[str] | None = None,
    ) -> dict[str, Any]:
        """Create a new agent (requires admin token)."""
        body = {
            "name": name,
            "trustTier": trust_tier or "verified",
            "tags": list(tags) if tags else [],
        }
        return await self._admin_json("POST", "/admin/agents", json_body=body)

    async def revoke_agent(self, agent_id: str) -> None:
        """Revoke an agent (requires admin token).

        The ID is percent-encoded as a single path segment.
        """
        if agent_id in ("", ".", ".."):
            raise ValueError(f"invalid agent id: {agent_id!r}")
        await self._admin_json("DELETE", f"/admin/agents/{quote(agent_id, safe='')}")

    async def list_policies(self) -> list[Policy]:
        """List all policies (requires admin token)."""
        payload = await self._admin_json("GET", "/admin/policies")
        return self._parse_items(payload, "policies", Policy)

    async def get_audit_log(
        self, *, limit: int = 50, decision: str | None = None
    ) -> list[AuditEntry]:
        """Fetch audit log entries (requires admin token)."""
        params: dict[str, Any] = {"limit": limit}
        if decision:
            params["decision"] = decision
        payload = await self._admin_json("GET", "/admin/audit", params=params)
        return self._parse_items(payload, "entries", AuditEntry)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> MeshGuardClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
