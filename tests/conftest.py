"""pytest fixtures for MeshGuard."""

from __future__ import annotations

import logging
import sys
from collections.abc import AsyncIterator, Callable, Iterator
from pathlib import Path
from typing import Any

import httpx
import pytest
import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
for path in (SRC_DIR, ROOT_DIR):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from meshguard.client import MeshGuardClient
from meshguard.logging import LOGGER_NAMESPACE, clear_logging_context

GATEWAY_URL = "http://gateway.test"
AGENT_TOKEN = "tok_agent"  # nosec B105
ADMIN_TOKEN = "adm_secret"  # nosec B105


class GatewayState:
    """Scriptable policy state for the fake gateway service."""

    def __init__(self) -> None:
        self.denied: dict[str, dict[str, str]] = {}
        self.rate_limited: set[str] = set()
        self.failing: set[str] = set()
        self.health_status = "healthy"
        self.echo_trace_id: str | None = None
        self.requests: list[dict[str, Any]] = []
        self.agents: list[dict[str, Any]] = [
            {"id": "agent-1", "name": "Researcher", "trustTier": "verified"},
            {
                "id": "agent-2",
                "name": "Mailer",
                "trustTier": "untrusted",
                "tags": ["email"],
                "orgId": "org-9",
            },
        ]
        self.policies: list[dict[str, Any]] = [
            {"id": "pol-1", "name": "default", "rules": 3},
            {"id": "pol-2", "name": "strict", "rules": 7},
        ]
        self.audit: list[dict[str, Any]] = [
            {
                "id": f"audit-{index}",
                "timestamp": f"2026-10-0{index}T00:00:00Z",
                "action": "read:contacts",
                "decision": "deny" if index % 2 else "allow",
                "agentId": "agent-1",
            }
            for index in range(1, 6)
        ]

    def deny(
        self,
        action: str,
        *,
        policy: str | None = None,
        rule: str | None = None,
        message: str | None = None,
    ) -> None:
        body = {"policy": policy, "rule": rule, "message": message}
        self.denied[action] = {key: value for key, value in body.items() if value}


def create_gateway_app(state: GatewayState) -> FastAPI:
    """Build a fake MeshGuard gateway service backed by ``state``."""
    app = FastAPI()

    def record(request: Request) -> None:
        state.requests.append(
            {
                "method": request.method,
                "path": request.url.path,
                "params": dict(request.query_params),
                "headers": dict(request.headers),
            }
        )

    def evaluate(request: Request) -> Response | None:
        if request.headers.get("authorization") != f"Bearer {AGENT_TOKEN}":
            return JSONResponse(status_code=401, content={"error": "invalid token"})
        action = request.headers.get("x-meshguard-action", "")
        if action in state.rate_limited:
            return JSONResponse(
                status_code=429,
                content={"error": "slow down"},
                headers={"Retry-After": "7"},
            )
        if action in state.failing:
            return PlainTextResponse("policy engine exploded", status_code=500)
        if action in state.denied:
            return JSONResponse(status_code=403, content=state.denied[action])
        return None

    def admin_guard(request: Request) -> Response | None:
        record(request)
        if request.headers.get("x-admin-token") != ADMIN_TOKEN:
            return JSONResponse(status_code=401, content={"error": "admin token invalid"})
        return None

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
        record(request)
        return {"status": state.health_status, "version": "1.4.2"}

    @app.get("/proxy/check")
    async def check(request: Request) -> Response:
        record(request)
        failure = evaluate(request)
        if failure is not None:
            return failure
        body: dict[str, Any] = {"policy": "default"}
        if state.echo_trace_id:
            body["traceId"] = state.echo_trace_id
        return JSONResponse(content=body)

    @app.api_route("/proxy/{path:path}", methods=["GET", "POST", "PUT", "DELETE"])
    async def proxy(path: str, request: Request) -> Response:
        record(request)
        failure = evaluate(request)
        if failure is not None:
            return failure
        raw_body = await request.body()
        return JSONResponse(
            content={
                "path": path,
                "method": request.method,
                "action": request.headers.get("x-meshguard-action"),
                "body": raw_body.decode() or None,
            }
        )

    @app.get("/admin/agents")
    async def list_agents(request: Request) -> Response:
        failure = admin_guard(request)
        if failure is not None:
            return failure
        return JSONResponse(content={"agents": state.agents})

    @app.post("/admin/agents")
    async def create_agent(request: Request) -> Response:
        failure = admin_guard(request)
        if failure is not None:
            return failure
        payload = await request.json()
        agent = {"id": f"agent-{len(state.agents) + 1}", **payload}
        state.agents.append(agent)
        return JSONResponse(status_code=201, content=agent)

    @app.delete("/admin/agents/{agent_id}")
    async def revoke_agent(agent_id: str, request: Request) -> Response:
        failure = admin_guard(request)
        if failure is not None:
            return failure
        remaining = [agent for agent in state.agents if agent["id"] != agent_id]
        if len(remaining) == len(state.agents):
            return PlainTextResponse("agent not found", status_code=404)
        state.agents = remaining
        return Response(status_code=204)

    @app.get("/admin/policies")
    async def list_policies(request: Request) -> Response:
        failure = admin_guard(request)
        if failure is not None:
            return failure
        return JSONResponse(content={"policies": state.policies})

    @app.get("/admin/audit")
    async def audit(request: Request) -> Response:
        failure = admin_guard(request)
        if failure is not None:
            return failure
        limit = int(request.query_params.get("limit", "50"))
        decision = request.query_params.get("decision")
        entries = [
            entry for entry in state.audit if decision is None or entry["decision"] == decision
        ]
        return JSONResponse(content={"entries": entries[:limit]})

    return app


@pytest.fixture()
def gateway_state() -> GatewayState:
    return GatewayState()


@pytest.fixture()
def gateway_app(gateway_state: GatewayState) -> FastAPI:
    return create_gateway_app(gateway_state)


@pytest.fixture()
def gateway_transport(gateway_app: FastAPI) -> httpx.ASGITransport:
    return httpx.ASGITransport(app=gateway_app)


@pytest.fixture()
def make_client(
    gateway_transport: httpx.ASGITransport,
) -> Callable[..., MeshGuardClient]:
    def factory(**options: Any) -> MeshGuardClient:
        options.setdefault("gateway_url", GATEWAY_URL)
        options.setdefault("transport", gateway_transport)
        return MeshGuardClient(**options)

    return factory


@pytest.fixture()
async def client(
    make_client: Callable[..., MeshGuardClient],
) -> AsyncIterator[MeshGuardClient]:
    async with make_client(
        agent_token=AGENT_TOKEN, admin_token=ADMIN_TOKEN, trace_id="trace-test"
    ) as mesh_client:
        yield mesh_client


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "MESHGUARD_GATEWAY_URL",
        "MESHGUARD_AGENT_TOKEN",
        "MESHGUARD_ADMIN_TOKEN",
        "MESHGUARD_TIMEOUT",
        "MESHGUARD_TRACE_ID",
    ):
        monkeypatch.delenv(name, raising=False)



@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    yield
    clear_logging_context()
    structlog.reset_defaults()
    logging.getLogger(LOGGER_NAMESPACE).setLevel(logging.NOTSET)
