"""Demo agent smoke tests."""

from __future__ import annotations

import pytest
from conftest import AGENT_TOKEN, GatewayState

from demo.agent import DemoAgent
from meshguard.client import MeshGuardClient


@pytest.mark.asyncio
async def test_demo_agent_reports_allowed_and_blocked(
    capsys, make_client, gateway_state: GatewayState
) -> None:
    gateway_state.deny("write:files", policy="read-only", message="Writes disabled")
    gateway_state.rate_limited.add("execute:api")

    client: MeshGuardClient = make_client(agent_token=AGENT_TOKEN)
    async with client:
        results = await DemoAgent(client).run_demo()

    assert results[0]["rows"][0]["name"] == "Widget"
    assert results[1]["success"] is False
    assert results[1]["policy"] == "read-only"
    assert "Writes disabled" in results[1]["error"]
    assert results[2] == {"success": False, "error": "rate_limit: Rate limit exceeded"}

    output = capsys.readouterr().out
    assert "=== MeshGuard Demo ===" in output
    assert "BLOCKED" in output
    assert "Gateway is not healthy" not in output


@pytest.mark.asyncio
async def test_demo_agent_warns_when_gateway_unhealthy(
    capsys, make_client, gateway_state: GatewayState
) -> None:
    gateway_state.health_status = "degraded"
    async with make_client(agent_token=AGENT_TOKEN) as client:
        results = await DemoAgent(client).run_demo()

    assert results[2]["status"] == 200
    assert "Gateway is not healthy" in capsys.readouterr().out
