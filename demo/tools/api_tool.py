"""Mock API tool for demos."""

from __future__ import annotations

from typing import Any


class ApiTool:
    name = "api_tool"
    description = "Mock API tool with get/post operations."

    async def invoke(self, input: dict[str, Any], config: Any = None) -> dict[str, Any]:
        """Return a stubbed API response."""
        endpoint = input.get("endpoint", "")
        method = input.get("method", "GET")
        return {"endpoint": endpoint, "method": method, "status": 200}
